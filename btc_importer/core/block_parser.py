"""Decoding of framed block payloads into structured blocks."""

from typing import List, Tuple

import structlog

from btc_importer.core.byte_reader import ByteReader
from btc_importer.core.errors import (
    BlockImportError, BlockSizeMismatch, MalformedTransaction, SCOPE_BLOCK
)
from btc_importer.models.blockchain import (
    Block, BlockHeader, BlockOutcome, Frame, ImportFailure, Transaction, TxInput, TxOutput
)
from btc_importer.utils.bitcoin import HEADER_SIZE, WITNESS_FLAG, unpack_header

logger = structlog.get_logger(__name__)

FRAME_HEADER_SIZE = 8


class BlockStreamParser:
    """Parse raw block payloads into ``Block`` objects."""

    def __init__(self):
        self.logger = logger.bind(component="block_parser")

    def parse(self, payload: bytes, base_offset: int = 0) -> Block:
        """
        Decode one block payload.

        Fields are read in wire order: the 80-byte header, a varint
        transaction count, then each transaction. The whole payload must be
        consumed; leftover or missing bytes mean the frame is malformed.

        Raises:
            TruncatedInput, MalformedVarInt, MalformedTransaction,
            BlockSizeMismatch
        """
        reader = ByteReader(payload, base_offset=base_offset)

        header = self._read_header(reader)
        transaction_count = reader.read_varint()
        transactions = tuple(
            self._read_transaction(reader) for _ in range(transaction_count)
        )

        if not reader.at_end():
            raise BlockSizeMismatch(
                f"block declared {len(payload)} bytes but decoding consumed {reader.position}",
                offset=reader.absolute_position,
            )

        return Block(
            header=header,
            size=len(payload),
            transaction_count=transaction_count,
            transactions=transactions,
        )

    def decode(self, frame: Frame) -> BlockOutcome:
        """Decode a frame, turning block-level errors into a failure value."""
        try:
            block = self.parse(frame.payload, base_offset=frame.offset + FRAME_HEADER_SIZE)
        except BlockImportError as e:
            if e.scope != SCOPE_BLOCK:
                raise
            e.with_context(file_name=frame.file_name, offset=frame.offset)
            self.logger.warning("Skipping malformed block",
                                file=frame.file_name,
                                frame_offset=frame.offset,
                                error_offset=e.offset,
                                error=e.message,
                                kind=e.kind)
            return BlockOutcome(frame=frame, failure=ImportFailure.from_error(e))
        return BlockOutcome(frame=frame, block=block)

    def _read_header(self, reader: ByteReader) -> BlockHeader:
        version, previous_block_hash, merkle_root, time, bits, nonce = unpack_header(
            reader.read_fixed(HEADER_SIZE)
        )
        return BlockHeader(
            version=version,
            previous_block_hash=previous_block_hash,
            merkle_root=merkle_root,
            time=time,
            bits=bits,
            nonce=nonce,
        )

    def _read_transaction(self, reader: ByteReader) -> Transaction:
        start = reader.absolute_position
        version = reader.read_uint32()

        input_count = reader.read_varint()
        segwit = False
        if input_count == 0:
            # Zero inputs is the segwit marker; the flag byte follows
            flag = reader.read_fixed(1)[0]
            if flag != WITNESS_FLAG:
                raise MalformedTransaction(
                    f"unknown transaction flag 0x{flag:02x}", offset=start
                )
            segwit = True
            input_count = reader.read_varint()

        inputs = tuple(self._read_input(reader) for _ in range(input_count))
        output_count = reader.read_varint()
        outputs = tuple(self._read_output(reader) for _ in range(output_count))

        witnesses: Tuple[Tuple[bytes, ...], ...] = ()
        if segwit:
            witnesses = tuple(self._read_witness(reader) for _ in range(input_count))
            if not any(witnesses):
                raise MalformedTransaction("superfluous witness record", offset=start)

        lock_time = reader.read_uint32()
        return Transaction(
            version=version,
            inputs=inputs,
            outputs=outputs,
            lock_time=lock_time,
            witnesses=witnesses,
        )

    def _read_input(self, reader: ByteReader) -> TxInput:
        return TxInput(
            previous_transaction_hash=reader.read_hash(),
            previous_output_index=reader.read_uint32(),
            script_signature=reader.read_var_bytes(),
            sequence=reader.read_uint32(),
        )

    def _read_output(self, reader: ByteReader) -> TxOutput:
        return TxOutput(
            value=reader.read_int64(),
            script_pubkey=reader.read_var_bytes(),
        )

    def _read_witness(self, reader: ByteReader) -> Tuple[bytes, ...]:
        item_count = reader.read_varint()
        items: List[bytes] = [reader.read_var_bytes() for _ in range(item_count)]
        return tuple(items)
