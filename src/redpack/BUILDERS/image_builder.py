"""
Builders that turn staged recipes into images through the docker CLI.
"""
from typing import List, Optional
from ..MODELS.build_result import BuildResult
from ..MODELS.image_recipe import ImageRecipe
from ..RUNNERS.command_runner import CommandRunner
from .context_builder import BuildContextBuilder

class ImageBuilder:
    """
    Stages a recipe's build context and feeds it to `docker build` on stdin.
    A failed step aborts the build; nothing is retried.
    """
    def __init__(self,
                 context_builder: Optional[BuildContextBuilder] = None,
                 runner: Optional[CommandRunner] = None):
        """
        Initializes the ImageBuilder.

        :param context_builder: Stages contexts. Reads from the current directory by default.
        :param runner: Runs docker commands.
        """
        self.context_builder = context_builder or BuildContextBuilder()
        self.runner = runner or CommandRunner()

    def build_command(self, recipe: ImageRecipe, tag: Optional[str] = None,
                      pull: bool = False, no_cache: bool = False) -> List[str]:
        command = ["docker", "build", "-t", tag or recipe.tag]
        if pull:
            command.append("--pull")
        if no_cache:
            command.append("--no-cache")
        # Context arrives as a tar on stdin
        command.append("-")
        return command

    def build(self, recipe: ImageRecipe, tag: Optional[str] = None, pull: bool = False,
              no_cache: bool = False, dry_run: bool = False) -> BuildResult:
        """
        Builds the image for a recipe.

        :param recipe: The recipe to build.
        :param tag: Overrides the recipe's tag.
        :param pull: Always attempt to pull a newer base image.
        :param no_cache: Do not use the layer cache.
        :param dry_run: Stage and validate only.
        :return: A BuildResult.
        """
        name = recipe.topology.value
        tag = tag or recipe.tag
        context = self.context_builder.stage(recipe)
        command = self.build_command(recipe, tag=tag, pull=pull, no_cache=no_cache)

        if not recipe.base_reference.is_pinned:
            print(f"[{name}] Warning: base image {recipe.base_image} is not pinned to a digest; "
                  f"rebuilds may pick up a different base")

        if dry_run:
            print(f"[{name}] Dry run: {' '.join(command)} (context {context.digest})")
            return BuildResult(topology=name, tag=tag, context_digest=context.digest,
                               dry_run=True, command=command)

        print(f"[{name}] Building {tag} from {recipe.base_image}")
        self.runner.run(command, input_bytes=context.archive)
        image_id = self.image_id(tag)
        print(f"[{name}] Built {tag} ({image_id})")
        return BuildResult(topology=name, tag=tag, context_digest=context.digest,
                           image_id=image_id, command=command)

    def image_id(self, tag: str) -> str:
        result = self.runner.run(["docker", "image", "inspect", "--format", "{{.Id}}", tag])
        return result.stdout.strip()
