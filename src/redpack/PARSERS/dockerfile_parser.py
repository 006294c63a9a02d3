"""
Parsers for Dockerfiles, extracting instructions, options and arguments.
"""
import json
import re
import shlex
from typing import Dict, List, Tuple
from ..MODELS.dockerfile_ast import DockerfileAST, Instruction

# Instructions whose shell-form arguments are whitespace separated words
_WORD_INSTRUCTIONS = {"FROM", "COPY", "ADD", "EXPOSE", "WORKDIR", "USER", "LABEL", "VOLUME", "ARG"}

_FLAG = re.compile(r'^--([a-z][a-z-]*)(?:=(.*))?$')


class DockerfileParser:
    """
    Parser for Dockerfile instructions.
    """
    def parse(self, dockerfile_path: str) -> DockerfileAST:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            DockerfileAST: The parsed instructions.
        """
        with open(dockerfile_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> DockerfileAST:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            DockerfileAST: The parsed instructions.
        """
        # Comments only count at the start of a line
        content = re.sub(r'^\s*#.*$', '', content, flags=re.MULTILINE)
        content = re.sub(r'\\[ \t]*\r?\n', ' ', content)

        pattern = re.compile(r'^\s*([A-Za-z]+)\s+(.*)$', re.MULTILINE)

        instructions = []
        for match in pattern.finditer(content):
            inst = match.group(1).upper()
            args_str = match.group(2).strip()
            flags, args_str = self._split_flags(args_str)
            args, exec_form = self._split_arguments(inst, args_str)
            instructions.append(Instruction(
                instruction=inst,
                arguments=args,
                flags=flags,
                exec_form=exec_form,
                raw=match.group(0).strip(),
            ))

        return DockerfileAST(instructions=instructions)

    def _split_flags(self, args_str: str) -> Tuple[Dict[str, str], str]:
        """
        Peels `--name=value` options off the front of an argument string.
        """
        flags = {}
        rest = args_str
        while rest.startswith('--'):
            head, _, tail = rest.partition(' ')
            match = _FLAG.match(head)
            if not match:
                break
            flags[match.group(1)] = match.group(2) if match.group(2) is not None else ''
            rest = tail.lstrip()
        return flags, rest

    def _split_arguments(self, inst: str, args_str: str) -> Tuple[List[str], bool]:
        if args_str.startswith('[') and args_str.endswith(']'):
            try:
                args = json.loads(args_str)
            except json.JSONDecodeError:
                args = None
            if isinstance(args, list) and all(isinstance(a, str) for a in args):
                return args, True

        if inst in _WORD_INSTRUCTIONS:
            try:
                return shlex.split(args_str), False
            except ValueError:
                return args_str.split(), False
        if inst == "ENV":
            if '=' in args_str:
                return re.findall(r'(\S+=\S+)', args_str), False
            return args_str.split(None, 1), False
        return [args_str], False
