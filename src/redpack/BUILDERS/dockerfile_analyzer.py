"""
Builders for reducing parsed Dockerfiles into ImageDefinition summaries.
"""
import posixpath
import re
import shlex
from typing import List
from ..MODELS.dockerfile_ast import DockerfileAST
from ..MODELS.image_definition import CopyStep, ImageDefinition
from ..PARSERS.dockerfile_parser import DockerfileParser

_CHMOD_MODE = re.compile(r'^(?:[0-7]{3,4}|[ugoa]*[-+=][rwxXst]+(?:,[ugoa]*[-+=][rwxXst]+)*)$')


class DockerfileAnalyzer:
    """
    Walks a Dockerfile's instructions and records what each one does
    to the image: where files land, who owns them, which ports are
    exposed and what runs on start.
    """
    def __init__(self):
        self.parser = DockerfileParser()

    def analyze_file(self, dockerfile_path: str) -> ImageDefinition:
        return self.analyze(self.parser.parse(dockerfile_path))

    def analyze_string(self, content: str) -> ImageDefinition:
        return self.analyze(self.parser.parse_from_string(content))

    def analyze(self, ast: DockerfileAST) -> ImageDefinition:
        """
        Builds an ImageDefinition from parsed instructions.

        :param ast: Parsed Dockerfile.
        :return: Summary of the image the Dockerfile produces.
        """
        image = ImageDefinition()

        for inst in ast.instructions:
            cmd = inst.instruction
            args = inst.arguments

            if cmd == "FROM" and args:
                # A later stage replaces everything an earlier one set up
                image = ImageDefinition(base_image=args[0])
            elif cmd == "WORKDIR" and args:
                image.working_directory = self._resolve(image.working_directory, args[0])
                image.created_directories.append(image.working_directory)
            elif cmd in ("COPY", "ADD") and len(args) >= 2:
                self._record_copy(image, args, inst.flags)
            elif cmd == "RUN":
                command = " ".join(args)
                image.run_instructions.append(command)
                self._record_run(image, command)
            elif cmd == "EXPOSE":
                for port in args:
                    image.exposed_ports.append(port if "/" in port else f"{port}/tcp")
            elif cmd == "ENTRYPOINT":
                image.entrypoint = args if inst.exec_form else ["/bin/sh", "-c", args[0]]
                image.entrypoint_exec_form = inst.exec_form
            elif cmd == "CMD":
                image.cmd = args if inst.exec_form else ["/bin/sh", "-c", args[0]]
            elif cmd == "USER" and args:
                image.user = args[0]
            elif cmd == "LABEL":
                for arg in args:
                    if '=' in arg:
                        key, value = arg.split('=', 1)
                        image.labels[key] = value

        return image

    def _resolve(self, cwd: str, path: str) -> str:
        return posixpath.normpath(posixpath.join(cwd, path))

    def _record_copy(self, image: ImageDefinition, args: List[str], flags: dict):
        *sources, dest = args
        dest_dir = dest.endswith("/") or len(sources) > 1 or dest in (".", "./")
        dest = self._resolve(image.working_directory, dest)
        for source in sources:
            target = posixpath.join(dest, posixpath.basename(source.rstrip("/"))) if dest_dir else dest
            image.copies.append(CopyStep(
                source=source,
                destination=target,
                chown=flags.get("chown"),
                chmod=flags.get("chmod"),
            ))

    def _record_run(self, image: ImageDefinition, command: str):
        for segment in re.split(r'&&|;|\|\|', command):
            try:
                words = shlex.split(segment)
            except ValueError:
                continue
            if not words:
                continue
            tool, rest = words[0], words[1:]
            options = [w for w in rest if w.startswith("-")]
            operands = [w for w in rest if not w.startswith("-")]
            if tool == "mkdir":
                for path in operands:
                    image.created_directories.append(self._resolve(image.working_directory, path))
            elif tool == "chown" and len(operands) >= 2:
                owner, paths = operands[0], operands[1:]
                recursive = any(o in ("-R", "--recursive") for o in options)
                for path in self._expand(image, paths, recursive):
                    image.ownership[path] = owner
            elif tool == "chmod" and len(operands) >= 2 and _CHMOD_MODE.match(operands[0]):
                mode, paths = operands[0], operands[1:]
                recursive = any(o in ("-R", "--recursive") for o in options)
                for path in self._expand(image, paths, recursive):
                    image.modes[path] = mode

    def _expand(self, image: ImageDefinition, paths: List[str], recursive: bool) -> List[str]:
        """
        Turns chown/chmod operands into the copied files they reach.
        Handles plain paths, `dir/*` globs and recursive directories.
        """
        copied = [step.destination for step in image.copies]
        expanded = []
        for path in paths:
            if path.endswith("/*"):
                directory = self._resolve(image.working_directory, path[:-2])
                expanded.extend(p for p in copied if posixpath.dirname(p) == directory)
                continue
            resolved = self._resolve(image.working_directory, path)
            expanded.append(resolved)
            if recursive:
                prefix = resolved.rstrip("/") + "/"
                expanded.extend(p for p in copied if p.startswith(prefix))
        return expanded
