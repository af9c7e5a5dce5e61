import argparse
import logging
import sys
import time

from luacparse import config
from luacparse.decoder import decode
from luacparse.errors import DecodeError
from luacparse.interchange import to_msgpack
from luacparse.literal import to_literal
from luacparse.model import LuaBytecode


def describe(bytecode: LuaBytecode) -> str:
    header = bytecode.header
    output = [
        f"--<@ {header.dialect.name} | format {header.format_version} | "
        f"{'big' if header.big_endian else 'little'} endian @>--"
    ]
    protos = 0
    for depth, chunk in bytecode.main_chunk.walk():
        indent = "    " * depth
        output.append(
            f"{indent}--< Proto->{protos:03} {chunk.display_name or '?'} | "
            f"Line {chunk.line_defined}-{chunk.last_line_defined} >--"
        )
        output.append(
            f"{indent}  params: {chunk.num_params}, upvalues: {chunk.num_upvalues}, "
            f"stack: {chunk.max_stack}, vararg: {chunk.is_vararg is not None}, "
            f"instructions: {len(chunk.instructions)}"
        )
        for i, k in enumerate(chunk.constants):
            output.append(f"{indent}  [{i}] = {to_literal(k)}")
        for i, n in enumerate(chunk.num_constants):
            output.append(f"{indent}  #{i} = {n!r}")
        protos += 1
    output.append(f"--<@ Protos: {protos} @>--")
    return "\n".join(output)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="luacparse", description="Decode Lua, LuaJIT and Luau bytecode files."
    )
    parser.add_argument("file", help="bytecode file to decode")
    parser.add_argument("--luau", action="store_true", help="the file is Luau bytecode")
    parser.add_argument("--msgpack", metavar="OUT", help="also write the decoded tree as msgpack")
    parser.add_argument("--debug", action="store_true", help="trace every header and prototype")
    args = parser.parse_args(argv)

    if args.debug:
        config.DEBUG = True
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    with open(args.file, "rb") as f:
        bytecode = f.read()

    start = time.perf_counter()
    try:
        decoded = decode(bytecode, dialect="luau" if args.luau else None)
    except DecodeError as e:
        print(f"{args.file}: {e}", file=sys.stderr)
        return 1
    end = time.perf_counter()

    print(describe(decoded))
    print(f"Decoded bytecode in {end - start:.6f}s")
    if args.msgpack:
        with open(args.msgpack, "wb") as f:
            f.write(to_msgpack(decoded))
        print(f"Wrote {args.msgpack}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
