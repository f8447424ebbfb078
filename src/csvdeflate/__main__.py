# CLI of csvdeflate module: python -m csvdeflate --help
import argparse
import csv
import os
import sys
from time import time
from typing import Any, Protocol

import csvdeflate
from csvdeflate import Codec
from csvdeflate import __version__ as csvdeflate_version


class Args(Protocol):
    cat: str | None
    count: str | None
    convert: str | None
    output: str | None
    level: int | None
    col_sep: str
    headers: bool
    encoding: str
    f: bool


# output file may be overwritten
def check_output(args: Args, path: str) -> None:
    if not args.f and os.path.isfile(path):
        answer = input(f"output file already exists:\n{path}\noverwrite? (y/n) ")
        print()
        if answer != "y":
            sys.exit()


def csv_options(args: Args) -> dict[str, Any]:
    return {"delimiter": args.col_sep, "encoding": args.encoding}


def cat(args: Args) -> None:
    writer = csv.writer(sys.stdout, delimiter=args.col_sep, lineterminator="\n")
    for row in csvdeflate.foreach(args.cat, **csv_options(args)):  # type: ignore[arg-type]
        writer.writerow(row)


def count(args: Args) -> None:
    n = 0
    for _ in csvdeflate.foreach(
        args.count,  # type: ignore[arg-type]
        headers=args.headers,
        **csv_options(args),
    ):
        n += 1
    print(n)


def convert(args: Args) -> None:
    # check output file
    if args.output is None:
        raise ValueError("need to specify output file using -o/--output option")
    codec = Codec.from_path(args.output)
    check_output(args, args.output)

    level = codec.default_level if args.level is None else args.level
    low, high = codec.level_bounds()
    if not (low <= level <= high):
        msg = (
            f"-l/--level value should: {low} <= v <= {high} for "
            f"{codec.name.lower()}. provided value is {level}."
        )
        raise ValueError(msg)

    # pre-convert message
    msg = (
        "Convert file:\n"
        f" - input file : {args.convert}\n"
        f" - output file: {args.output}\n"
        f" - codec: {codec.name.lower()}, level {level}"
    )
    print(msg)

    # convert
    t1 = time()
    rows = 0
    with csvdeflate.open(args.convert, "r", **csv_options(args)) as fin, \
         csvdeflate.open(args.output, "w", level=level, **csv_options(args)) as fout:  # type: ignore[arg-type]
        for row in fin:
            fout.writerow(row)
            rows += 1
    t2 = time()

    # post-convert message
    in_size = os.path.getsize(args.convert)  # type: ignore[arg-type]
    out_size = os.path.getsize(args.output)
    ratio = 100.0 if in_size == 0 else 100 * out_size / in_size
    msg = (
        f"\nConversion succeeded, {t2 - t1:.2f} seconds.\n"
        f"{rows:,} rows, input {in_size:,} bytes, output {out_size:,} bytes, "
        f"ratio {ratio:.2f}%.\n"
    )
    print(msg)


def col_sep(value: str) -> str:
    if value == r"\t":
        return "\t"
    if len(value) != 1:
        raise argparse.ArgumentTypeError("column separator should be one character")
    return value


def parse_arg(argv: list[str] | None = None) -> Args:
    p = argparse.ArgumentParser(
        prog="CLI of csvdeflate module",
        description=(
            "Read and write gzip (.gz) or zstd (.zst) compressed CSV files."
        ),
        epilog=(
            "Examples of use:\n"
            "  print the rows of a file:\n"
            "    python -m csvdeflate --cat IN_FILE\n"
            "  count the data rows of a file with a header row:\n"
            "    python -m csvdeflate --count IN_FILE\n"
            "  convert a gzip file to zstd, level 19:\n"
            "    python -m csvdeflate -c IN_FILE.csv.gz -o OUT_FILE.csv.zst -l 19"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    g = p.add_argument_group("Common arguments")
    g.add_argument(
        "--col-sep",
        metavar="SEP",
        type=col_sep,
        default=",",
        help=r"column separator, use \t for tab (default: ,)",
    )
    g.add_argument(
        "--encoding",
        metavar="NAME",
        default="utf-8",
        help="text encoding of the CSV data (default: utf-8)",
    )
    g.add_argument(
        "-f",
        action="store_true",
        help="disable output check, allows overwriting existing file.",
    )

    gm = p.add_mutually_exclusive_group()
    gm.add_argument("--cat", metavar="FILE", type=str, help="print the rows of FILE")
    gm.add_argument(
        "--count", metavar="FILE", type=str, help="print the number of rows of FILE"
    )
    gm.add_argument(
        "-c", "--convert", metavar="FILE", type=str, help="re-encode FILE"
    )

    g = p.add_argument_group("Count arguments")
    g.add_argument(
        "--no-headers",
        action="store_false",
        dest="headers",
        default=True,
        help="count the first row as a data row",
    )

    g = p.add_argument_group("Convert arguments")
    g.add_argument(
        "-o", "--output", metavar="FILE", type=str, help="result stored into FILE"
    )
    g.add_argument(
        "-l",
        "--level",
        metavar="#",
        type=int,
        default=None,
        help="compression level of the output codec, default: codec's default.",
    )

    return p.parse_args(argv)  # type: ignore[return-value]


def main(argv: list[str] | None = None) -> None:
    args = parse_arg(argv)

    if args.cat:
        cat(args)
    elif args.count:
        count(args)
    elif args.convert:
        print(f"*** csvdeflate module v{csvdeflate_version}. ***\n")
        convert(args)
    else:
        print("Invalid command. See help: python -m csvdeflate --help")


if __name__ == "__main__":
    main()
