"""
Build bytecode samples from Lua sources with the stock compilers.

`luac5.x` and `luajit` are expected on PATH. `luau-compile` can be fetched
from the luau-lang GitHub releases with `download_compiler`.
"""

import os
import shutil
import subprocess
from pathlib import Path
from platform import machine
from sys import platform
from typing import List, Optional
from zipfile import ZipFile

from requests import get

from luacparse.config import logger

# latest Luau version as of Mar 25, 2025, uses bytecode v6
compiler_version_full = "0.666"
# the last version of the Luau compiler that outputs Luau bytecode v5 by default
compiler_version_v5_full = "0.630"

LUAC_COMMANDS = {
    "lua5.1": "luac5.1",
    "lua5.2": "luac5.2",
    "lua5.3": "luac5.3",
    "lua5.4": "luac5.4",
}


def compile_command(dialect: str, input_file: Path, output_file: Path, compiler: Optional[Path] = None) -> List[str]:
    """The command line that compiles `input_file` for `dialect` ("lua5.1" .. "lua5.4", "luajit", "luau")."""
    if dialect in LUAC_COMMANDS:
        return [str(compiler or LUAC_COMMANDS[dialect]), "-o", str(output_file), str(input_file)]
    elif dialect == "luajit":
        return [str(compiler or "luajit"), "-b", "-g", str(input_file), str(output_file)]
    elif dialect == "luau":
        # luau-compile writes to stdout
        return [str(compiler or "luau-compile"), "--binary", "-O0", "-g0", str(input_file)]
    raise ValueError(f"Unknown dialect {dialect!r}")


def compiler_available(dialect: str) -> bool:
    name = compile_command(dialect, Path("in.lua"), Path("out.luac"))[0]
    return shutil.which(name) is not None


def compile_to_bytecode(dialect: str, input_file: Path, output_file: Path, compiler: Optional[Path] = None) -> Path:
    """
    Compiles a Lua script to bytecode and saves it to output_file.
    Raises subprocess.CalledProcessError when the compiler rejects the source.
    """
    command = compile_command(dialect, input_file, output_file, compiler)
    if dialect == "luau":
        with open(output_file, "wb") as f:
            subprocess.run(command, stdout=f, check=True)
    else:
        subprocess.run(command, check=True)
    logger.info(f"Compiled {input_file} to {output_file} using {command[0]} successfully.")
    return output_file


def release_platform() -> str:
    """Name of the prebuilt luau-lang release archive for this machine."""
    match os.name:
        case "nt":
            return "windows"
        case "posix":
            match platform:
                case "linux":
                    return "ubuntu"
                case "darwin":
                    if machine() not in ("arm64", "aarch64"):
                        raise ValueError(
                            f"The prebuilt binaries for MacOS are for Apple Silicon/aarch64, not {machine()}."
                        )
                    return "macos"
                case value:
                    # not sure if the Ubuntu ELF binaries actually work on FreeBSD or etc.
                    logger.warning(f"sys.platform value {value} not handled, assuming Linux/Ubuntu.")
                    return "ubuntu"
        case _:
            raise NotImplementedError(f"Your OS {os.name} isn't supported.")


def download_compiler(version: str, destination: Path) -> Path:
    """Downloads a Luau release from GitHub and extracts the luau-compile binary to destination."""
    download_platform = release_platform()
    repo = "luau-lang/luau"
    filename = destination.parent.joinpath(f"luau-{download_platform}.zip")
    link = f"https://github.com/{repo}/releases/download/{version}/{filename.name}"

    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading Luau compiler from {link}...")
    response = get(link, timeout=60)
    response.raise_for_status()
    with open(filename, "wb") as f:
        f.write(response.content)
    logger.info(f"Extracting luau-compile from {filename} to {destination}...")
    binary = "luau-compile.exe" if download_platform == "windows" else "luau-compile"
    with ZipFile(filename, "r") as zip_ref:
        os.replace(zip_ref.extract(binary, destination.parent), destination)
    # no chmod on Windows; elsewhere the binary needs RX permissions
    if download_platform != "windows":
        os.chmod(destination, 0o755)
    os.remove(filename)
    return destination


def download_compiler_if_not_present(version: str, destination: Path) -> Path:
    if not destination.exists():
        download_compiler(version, destination)
    return destination
