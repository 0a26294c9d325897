import subprocess
from pathlib import Path

import pytest

from src.provisioning import plan as p
from src.provisioning.templates import build_search_app_context

CONTROLLER = """class ArticlesController < ApplicationController
  # GET /articles
  def index
    @articles = Article.all
  end

  # GET /articles/1
  def show
  end
end
"""

INDEX_VIEW = """<p id="notice"><%= notice %></p>

<h1>Articles</h1>

<table></table>

<%= link_to 'New Article', new_article_path %>
"""

CONTROLLER_TEST = """require 'test_helper'

class ArticlesControllerTest < ActionDispatch::IntegrationTest
  setup do
    @article = articles(:one)
  end

  test "should get index" do
    get articles_url
    assert_response :success
  end
end
"""


def _write(root: Path, rel: str, text: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class _Runner:
    def __init__(self, *, fail_on: tuple[str, ...] | None = None, gems: tuple[str, ...] = ()):
        self.calls: list[tuple[list[str], str | None]] = []
        self.fail_on = fail_on
        self.gems = gems

    def run(self, args, *, cwd=None, env=None, check=True):
        self.calls.append((list(args), cwd))
        if self.fail_on and tuple(args[: len(self.fail_on)]) == self.fail_on:
            return subprocess.CompletedProcess(args, 1, stdout="", stderr="boom")
        if args[:3] == ["gem", "list", "-i"]:
            return subprocess.CompletedProcess(args, 0 if args[3] in self.gems else 1, stdout="", stderr="")
        if args[:3] == ["bin/rails", "generate", "scaffold"]:
            root = Path(cwd)
            _write(root, "app/controllers/articles_controller.rb", CONTROLLER)
            _write(root, "app/views/articles/index.html.erb", INDEX_VIEW)
            _write(root, "test/controllers/articles_controller_test.rb", CONTROLLER_TEST)
            _write(root, "app/models/article.rb", "class Article < ApplicationRecord\nend\n")
            _write(
                root,
                "config/routes.rb",
                "Rails.application.routes.draw do\n  resources :articles\nend\n",
            )
        out = "abc123 Initial commit\n" if args[:2] == ["git", "log"] else ""
        return subprocess.CompletedProcess(args, 0, stdout=out, stderr="")

    def commands(self) -> list[list[str]]:
        return [c for c, _cwd in self.calls]


class _Reporter:
    def __init__(self):
        self.lines = []

    def status(self, label, message, *, level="info"):
        self.lines.append((label, message, level))


@pytest.fixture
def app_root(tmp_path):
    root = tmp_path / "searchapp"
    _write(root, "Gemfile", "source 'https://rubygems.org'\ngem 'rails'\ngem 'sass-rails'\ngem 'coffee-rails'\n")
    _write(root, "README.md", "# Default\n")
    _write(root, "config/environments/development.rb", "Rails.application.configure do\nend\n")
    _write(root, "config/routes.rb", "Rails.application.routes.draw do\nend\n")
    return root


def test_plan_order_and_titles():
    steps = p.build_basic_plan(build_search_app_context(app_name="searchapp"))
    labels = [s.label for s in steps]
    assert labels[0] == "Git"
    assert steps[1].title == "Adding Readme..."
    assert any(
        isinstance(a, p.Run) and a.args == ("bundle", "install")
        for s in steps
        for a in s.actions
    )
    assert steps[-1].actions[0].args == ("bin/rails", "webpacker:install")


def test_full_plan_edits_the_generated_app(app_root):
    runner = _Runner()
    reporter = _Reporter()
    ctx = build_search_app_context(app_name="searchapp")
    p.Provisioner(app_root, runner=runner, reporter=reporter).run(p.build_basic_plan(ctx))

    cmds = runner.commands()
    assert cmds[0] == ["git", "init"]
    assert ["gem", "list", "-i", "thin"] in cmds
    assert ["bundle", "install"] in cmds
    assert ["bin/rails", "db:migrate"] in cmds
    assert ["bin/rails", "runner", "Article.__elasticsearch__.create_index! force: true"] in cmds
    assert cmds.index(["bin/rails", "db:migrate"]) < cmds.index(["bin/rails", "db:seed"])
    assert ["git", "commit", "--allow-empty", "-m", "Added search form and controller action"] in cmds
    assert ["git", "tag", "basic"] in cmds
    assert all(cwd == str(app_root) for _c, cwd in runner.calls)

    gemfile = (app_root / "Gemfile").read_text()
    assert "# gem 'sass-rails'" in gemfile
    assert "gem 'elasticsearch'\n" in gemfile
    assert "gem 'mocha', group: 'test'" in gemfile
    assert "gem 'thin'" not in gemfile

    controller = (app_root / "app/controllers/articles_controller.rb").read_text()
    assert controller.index("def search") < controller.index("# GET /articles/1")

    view = (app_root / "app/views/articles/index.html.erb").read_text()
    assert view.index("<h1>Articles</h1>") < view.index("form_tag search_articles_path")
    assert "<%= link_to 'All Articles', articles_path if params[:q] %>" in view

    routes = (app_root / "config/routes.rb").read_text()
    assert "root to: 'articles#index'" in routes
    assert "collection { get :search }" in routes

    test_file = (app_root / "test/controllers/articles_controller_test.rb").read_text()
    assert "Article.__elasticsearch__.import force: true" in test_file
    assert 'test "should get search results" do' in test_file

    assert "include Elasticsearch::Model::Callbacks" in (app_root / "app/models/article.rb").read_text()
    assert "config.assets.logger = false" in (
        app_root / "config/environments/development.rb"
    ).read_text()
    assert (app_root / "README.md").read_text().startswith("# Ruby on Rails and Elasticsearch")
    assert ("", "abc123 Initial commit", "info") in reporter.lines


def test_thin_added_when_installed(app_root):
    runner = _Runner(gems=("thin",))
    steps = [s for s in p.build_basic_plan(build_search_app_context(app_name="x")) if "Thin" in s.title]
    prov = p.Provisioner(app_root, runner=runner, reporter=_Reporter())
    assert prov.run_step(steps[0]) is True
    assert "gem 'thin'" in (app_root / "Gemfile").read_text()


def test_git_step_ignores_vendored_elasticsearch_once(app_root):
    first = p.build_basic_plan(build_search_app_context(app_name="x"))[0]
    prov = p.Provisioner(app_root, runner=_Runner(), reporter=_Reporter())
    prov.run_step(first)
    prov.run_step(first)
    lines = (app_root / ".gitignore").read_text().splitlines()
    assert lines.count("vendor/elasticsearch-*/") == 1


def _as_calendar(text: str) -> str:
    return text.replace("Article", "Calendar").replace("article", "calendar")


CALENDAR_CONTROLLER_TEST_EDITED = """require 'test_helper'

class CalendarsControllerTest < ActionDispatch::IntegrationTest
  setup do
    @calendar = calendars(:one)

    Calendar.__elasticsearch__.import force: true
    Calendar.__elasticsearch__.refresh_index!
  end

  test "should get index" do
    get calendars_url
    assert_response :success
  end

  test "should get search results" do
    get search_calendars_url(q: "mystring")
    assert_response :success
    assert_not_nil assigns(:calendars)
    assert_equal 2, assigns(:calendars).size
  end

end
"""


def test_resource_name_containing_end(app_root):
    class _CalendarRunner(_Runner):
        def run(self, args, *, cwd=None, env=None, check=True):
            res = super().run(args, cwd=cwd, env=env, check=check)
            if args[:3] == ["bin/rails", "generate", "scaffold"]:
                root = Path(cwd)
                for rel in (
                    "app/controllers/articles_controller.rb",
                    "app/views/articles/index.html.erb",
                    "test/controllers/articles_controller_test.rb",
                    "app/models/article.rb",
                    "config/routes.rb",
                ):
                    src = root / rel
                    _write(root, _as_calendar(rel), _as_calendar(src.read_text(encoding="utf-8")))
            return res

    ctx = build_search_app_context(app_name="searchapp", resource="Calendar")
    p.Provisioner(app_root, runner=_CalendarRunner(), reporter=_Reporter()).run(p.build_basic_plan(ctx))

    test_file = (app_root / "test/controllers/calendars_controller_test.rb").read_text()
    assert test_file == CALENDAR_CONTROLLER_TEST_EDITED


def test_failed_command_stops_the_plan(app_root):
    runner = _Runner(fail_on=("bundle", "install"))
    ctx = build_search_app_context(app_name="searchapp")
    with pytest.raises(p.ProvisioningError) as e:
        p.Provisioner(app_root, runner=runner, reporter=_Reporter()).run(p.build_basic_plan(ctx))
    assert e.value.command == "bundle install"
    assert e.value.returncode == 1
    assert e.value.output == "boom"
    assert not any(c[:2] == ["bin/rails", "generate"] for c in runner.commands())


def test_missing_edit_target_becomes_provisioning_error(tmp_path):
    step = p.Step(
        title="broken",
        label="Test",
        actions=(p._edit("gsub", p.edits.gsub_file, path="nope.rb", pattern="a", replacement="b"),),
    )
    with pytest.raises(p.ProvisioningError) as e:
        p.Provisioner(tmp_path, runner=_Runner(), reporter=_Reporter()).run_step(step)
    assert e.value.step == "broken"


def test_generate_app_skips_existing_dir(tmp_path):
    (tmp_path / "existing").mkdir()
    runner = _Runner()
    out = p.generate_app(tmp_path, "existing", runner=runner, reporter=_Reporter())
    assert out == tmp_path / "existing"
    assert runner.calls == []


def test_generate_app_runs_rails_new(tmp_path):
    runner = _Runner()
    p.generate_app(tmp_path, "fresh", runner=runner, reporter=_Reporter())
    assert runner.calls == [(["rails", "new", "fresh", "--skip-bundle"], str(tmp_path))]


def test_start_server_passes_port(tmp_path):
    runner = _Runner()
    assert p.start_server(tmp_path, 3001, runner=runner) == 0
    assert runner.commands() == [["bin/rails", "server", "--port=3001"]]
