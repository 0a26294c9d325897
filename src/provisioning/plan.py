from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Protocol

from src.provisioning import edits, templates
from src.provisioning.commands import CommandRunner, SubprocessRunner, format_command
from src.provisioning.templates import SearchAppContext

logger = logging.getLogger(__name__)

ELASTICSEARCH_RAILS_GIT = "https://github.com/elasticsearch/elasticsearch-rails.git"


class ProvisioningError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        output: str = "",
    ):
        super().__init__(message)
        self.step = step
        self.command = command
        self.returncode = returncode
        self.output = output


class Reporter(Protocol):
    def status(self, label: str, message: str, *, level: str = "info") -> None: ...


class LogReporter:
    def status(self, label: str, message: str, *, level: str = "info") -> None:
        log = logger.error if level == "error" else logger.info
        log("%s  %s", label, message)


@dataclass(frozen=True)
class Run:
    args: tuple[str, ...]
    show_output: bool = False

    def describe(self) -> str:
        return format_command(list(self.args))


@dataclass(frozen=True)
class Edit:
    description: str
    apply: Callable[[Path], bool]


Action = Run | Edit
Condition = Callable[[CommandRunner, Path], bool]


@dataclass(frozen=True)
class Step:
    title: str
    label: str
    actions: tuple[Action, ...] = ()
    commit: str | None = None
    commit_paths: tuple[str, ...] = (".",)
    when: Condition | None = field(default=None, compare=False)


def _run(*args: str, show_output: bool = False) -> Run:
    return Run(args=tuple(args), show_output=show_output)


def _edit(description: str, fn: Callable[..., bool], **kwargs: object) -> Edit:
    return Edit(description=description, apply=partial(fn, **kwargs))


def gem_installed(name: str) -> Condition:
    def _check(runner: CommandRunner, root: Path) -> bool:
        cp = runner.run(["gem", "list", "-i", name], cwd=str(root), check=False)
        return cp.returncode == 0

    return _check


def build_basic_plan(ctx: SearchAppContext) -> list[Step]:
    """Ordered steps that turn a fresh Rails app into the basic search app."""
    controller = templates.controller_path(ctx)
    index_view = templates.index_view_path(ctx)
    controller_test = templates.controller_test_path(ctx)

    return [
        Step(
            title="Initializing the repository",
            label="Git",
            actions=(
                _edit("touch tmp/.gitignore", edits.append_to_file, path="tmp/.gitignore", content=""),
                _edit(
                    "ignore vendored Elasticsearch",
                    edits.append_line_once,
                    path=".gitignore",
                    line="vendor/elasticsearch-*/",
                ),
                _run("git", "init"),
            ),
            commit="Initial commit: Clean application",
        ),
        Step(
            title="Adding Readme...",
            label="README",
            actions=(
                _edit("remove README.md", edits.remove_file, path="README.md"),
                _edit(
                    "create README.md",
                    edits.create_file,
                    path="README.md",
                    content=templates.render_readme(ctx),
                ),
            ),
            commit="[01] Added README for the application",
        ),
        Step(
            title="Adding Thin into Gemfile...",
            label="Rubygems",
            actions=(_edit("gem thin", edits.add_gem, name="thin"),),
            when=gem_installed("thin"),
        ),
        Step(
            title="Adding auxiliary test gems into Gemfile...",
            label="Rubygems",
            actions=(
                _edit("gem mocha", edits.add_gem, name="mocha", group="test"),
                _edit(
                    "gem rails-controller-testing",
                    edits.add_gem,
                    name="rails-controller-testing",
                    group="test",
                ),
            ),
        ),
        Step(
            title="Removing CoffeeScript, Sass and uglifier from Gemfile...",
            label="Rubygems",
            actions=(
                _edit("comment coffee", edits.comment_lines, path="Gemfile", pattern=r"gem ['\"]coffee"),
                _edit("comment sass", edits.comment_lines, path="Gemfile", pattern=r"gem ['\"]sass"),
                _edit("comment uglifier", edits.comment_lines, path="Gemfile", pattern=r"gem ['\"]uglifier"),
                _edit(
                    "uncomment therubyracer",
                    edits.uncomment_lines,
                    path="Gemfile",
                    pattern=r"gem ['\"]therubyracer",
                ),
            ),
        ),
        Step(
            title="Adding Elasticsearch libraries into Gemfile...",
            label="Rubygems",
            actions=(
                _edit("gem elasticsearch", edits.add_gem, name="elasticsearch"),
                _edit(
                    "gem elasticsearch-model",
                    edits.add_gem,
                    name="elasticsearch-model",
                    git=ELASTICSEARCH_RAILS_GIT,
                ),
                _edit(
                    "gem elasticsearch-rails",
                    edits.add_gem,
                    name="elasticsearch-rails",
                    git=ELASTICSEARCH_RAILS_GIT,
                ),
            ),
            commit="Added libraries into Gemfile",
            commit_paths=("Gemfile",),
        ),
        Step(
            title="Disabling asset logging in development...",
            label="Application",
            actions=(
                _edit(
                    "config.assets.logger",
                    edits.add_environment_config,
                    line="config.assets.logger = false",
                    env="development",
                ),
                _edit(
                    "config.assets.quiet",
                    edits.add_environment_config,
                    line="config.assets.quiet  = true",
                    env="development",
                ),
            ),
            commit="Disabled asset logging in development",
            commit_paths=("config/",),
        ),
        Step(
            title="Installing Rubygems...",
            label="Rubygems",
            actions=(_run("bundle", "install"),),
        ),
        Step(
            title=f"Generating the {ctx.resource} resource...",
            label="Model",
            actions=(
                _run("bin/rails", "generate", "scaffold", *templates.scaffold_generator_args(ctx)),
                _edit("root route", edits.add_route, line=f"root to: '{ctx.plural}#index'"),
                _run("bin/rails", "db:migrate"),
            ),
            commit=f"Added the generated {ctx.resource} resource",
        ),
        Step(
            title=f"Adding search support into the {ctx.resource} model...",
            label="Model",
            actions=(
                _edit(
                    "rewrite model",
                    edits.create_file,
                    path=f"app/models/{ctx.singular}.rb",
                    content=templates.render_model(ctx),
                ),
            ),
            commit=f"Added Elasticsearch support into the {ctx.resource} model",
        ),
        Step(
            title="Adding controller action, route, and HTML for searching...",
            label="Controller",
            actions=(
                _edit(
                    "search action",
                    edits.inject_into_file,
                    path=controller,
                    content=templates.render_search_action(ctx),
                    before=re.compile(templates.search_action_anchor(ctx), re.MULTILINE),
                ),
                _edit(
                    "search form",
                    edits.inject_into_file,
                    path=index_view,
                    content=templates.render_search_form(ctx),
                    after=re.compile(templates.search_form_anchor(ctx), re.IGNORECASE),
                ),
                _edit(
                    "all records link",
                    edits.inject_into_file,
                    path=index_view,
                    content=templates.render_all_records_link(ctx),
                    after=templates.all_records_link_anchor(ctx),
                ),
                _edit(
                    "search route",
                    edits.gsub_file,
                    path="config/routes.rb",
                    pattern=templates.routes_pattern(ctx),
                    replacement=templates.render_routes(ctx),
                    flags=re.MULTILINE,
                ),
                _edit(
                    "controller test setup",
                    edits.gsub_file,
                    path=controller_test,
                    pattern=templates.controller_test_setup_pattern(),
                    replacement=templates.render_controller_test_setup(ctx),
                    flags=re.DOTALL | re.MULTILINE,
                ),
                _edit(
                    "controller search test",
                    edits.inject_into_file,
                    path=controller_test,
                    content=templates.render_search_test(ctx),
                    after=templates.controller_test_index_anchor(),
                    flags=re.DOTALL | re.MULTILINE,
                ),
            ),
            commit="Added search form and controller action",
        ),
        Step(
            title="Seeding the database with data...",
            label="Database",
            actions=(
                _edit(
                    "db/seeds.rb",
                    edits.create_file,
                    path="db/seeds.rb",
                    content=templates.render_seeds(ctx),
                ),
                _run(*templates.create_index_command(ctx)),
                _run("bin/rails", "db:seed"),
            ),
            commit="Added the database seeding script",
            commit_paths=("db/seeds.rb",),
        ),
        Step(
            title="Details about the application:",
            label="Git",
            actions=(
                _run("git", "tag", "basic"),
                _run("git", "log", "--reverse", "--oneline", show_output=True),
            ),
        ),
        Step(
            title="Installing Webpacker...",
            label="Assets",
            actions=(_run("bin/rails", "webpacker:install"),),
        ),
    ]


class Provisioner:
    """Runs plan steps in order inside an application directory.

    Any failing command stops the run with `ProvisioningError`; nothing is
    retried or rolled back.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        runner: CommandRunner | None = None,
        reporter: Reporter | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self._root = Path(root)
        self._runner = runner or SubprocessRunner()
        self._reporter = reporter or LogReporter()
        self._env = env

    @property
    def root(self) -> Path:
        return self._root

    def _exec(self, step: Step, args: list[str]) -> str:
        cmd = format_command(args)
        logger.debug("[%s] %s", step.title, cmd)
        cp = self._runner.run(args, cwd=str(self._root), env=self._env, check=False)
        output = (cp.stdout or "") + (cp.stderr or "")
        if cp.returncode != 0:
            raise ProvisioningError(
                f"Command failed ({cp.returncode}) during '{step.title}': {cmd}",
                step=step.title,
                command=cmd,
                returncode=cp.returncode,
                output=output,
            )
        return output

    def run_step(self, step: Step) -> bool:
        if step.when is not None and not step.when(self._runner, self._root):
            logger.info("Skipping step: %s", step.title)
            return False

        self._reporter.status(step.label, step.title)
        for action in step.actions:
            if isinstance(action, Run):
                output = self._exec(step, list(action.args))
                if action.show_output and output.strip():
                    self._reporter.status("", output.rstrip())
                continue
            try:
                changed = action.apply(self._root)
            except edits.EditError as exc:
                raise ProvisioningError(
                    f"Edit '{action.description}' failed during '{step.title}': {exc}",
                    step=step.title,
                ) from exc
            logger.debug("edit %s: changed=%s", action.description, changed)

        if step.commit:
            self._exec(step, ["git", "add", *step.commit_paths])
            self._exec(step, ["git", "commit", "--allow-empty", "-m", step.commit])
        return True

    def run(self, plan: list[Step]) -> None:
        for step in plan:
            self.run_step(step)


def generate_app(
    parent: str | Path,
    app_name: str,
    *,
    runner: CommandRunner | None = None,
    reporter: Reporter | None = None,
) -> Path:
    """Run `rails new` unless the application directory already exists."""
    parent_dir = Path(parent)
    target = parent_dir / app_name
    if target.exists():
        logger.info("Application directory %s exists; skipping generator", target)
        return target

    (reporter or LogReporter()).status("Rails", f"Generating application {app_name}...")
    run = runner or SubprocessRunner()
    args = ["rails", "new", app_name, "--skip-bundle"]
    cp = run.run(args, cwd=str(parent_dir), check=False)
    if cp.returncode != 0:
        raise ProvisioningError(
            f"Command failed ({cp.returncode}): {format_command(args)}",
            step="Generating application",
            command=format_command(args),
            returncode=cp.returncode,
            output=(cp.stdout or "") + (cp.stderr or ""),
        )
    return target


def start_server(root: str | Path, port: int, *, runner: CommandRunner | None = None) -> int:
    run = runner or SubprocessRunner(capture_output=False)
    cp = run.run(["bin/rails", "server", f"--port={int(port)}"], cwd=str(root), check=False)
    return cp.returncode
