from __future__ import annotations

import json
import shlex
from dataclasses import dataclass
from pathlib import Path

# See https://clang.llvm.org/docs/JSONCompilationDatabase.html

C_SOURCE_SUFFIXES = (".c",)


@dataclass
class CompileCommand:
    """Represents a single compile command entry from compile_commands.json"""

    # Required fields
    directory: str
    file: str

    # Either command OR arguments is required (but not both)
    command: str | None = None
    arguments: list[str] | None = None

    # Optional fields
    output: str | None = None

    def __post_init__(self):
        """Validate that either command or arguments is provided"""
        if self.command is None and self.arguments is None:
            raise ValueError("Either 'command' or 'arguments' must be provided")
        if self.command is not None and self.arguments is not None:
            raise ValueError("Cannot specify both 'command' and 'arguments'")

    @property
    def directory_path(self) -> Path:
        return Path(self.directory)

    @property
    def absolute_file_path(self) -> Path:
        if Path(self.file).is_absolute():
            return Path(self.file)
        return self.directory_path / self.file

    def get_command_parts(self) -> list[str]:
        """Get command as a list of arguments, regardless of original format"""
        if self.arguments:
            return self.arguments
        elif self.command:
            # Use shlex.split() for proper shell-like parsing of quoted arguments
            return shlex.split(self.command)
        return []

    def get_include_dirs(self) -> list[Path]:
        """The `-I` directories of this command, resolved against its directory."""
        args = self.get_command_parts()
        dirs: list[Path] = []
        i = 0
        while i < len(args):
            arg = args[i]
            i += 1
            if arg == "-I" and i < len(args):
                # A bare -I takes the next argument as its directory.
                dirs.append(self.directory_path / args[i])
                i += 1
            elif arg.startswith("-I") and len(arg) > 2:
                dirs.append(self.directory_path / arg[2:])
        return [d.resolve() for d in dirs]


@dataclass
class CompileCommands:
    """Represents the entire compile_commands.json file"""

    commands: list[CompileCommand]

    @classmethod
    def from_json_file(cls, file_path: str | Path) -> CompileCommands:
        """Load compile commands from a JSON file"""
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: list[dict]) -> CompileCommands:
        commands = [CompileCommand(**entry) for entry in data]
        return cls(commands=commands)

    def get_c_source_files(self) -> list[Path]:
        """C source files in first-seen order, as resolved absolute paths."""
        seen: dict[Path, None] = {}
        for cmd in self.commands:
            if cmd.absolute_file_path.suffix in C_SOURCE_SUFFIXES:
                seen.setdefault(cmd.absolute_file_path.resolve(), None)
        return list(seen)

    def get_include_dirs(self) -> list[Path]:
        seen: dict[Path, None] = {}
        for cmd in self.commands:
            for d in cmd.get_include_dirs():
                seen.setdefault(d, None)
        return list(seen)
