"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

MIX_EXS = '''defmodule Demo.MixProject do
  use Mix.Project

  @version "0.1.0"

  def project do
    [
      app: :demo,
      version: @version,
      elixir: "~> 1.14",
      start_permanent: Mix.env() == :prod,
      deps: deps()
    ]
  end

  def application do
    [
      extra_applications: [:logger],
      mod: {Demo.Application, []}
    ]
  end

  defp deps do
    [
      {:jason, "~> 1.4"},
      {:plug, "~> 1.15"},
      {:credo, "~> 1.7", only: [:dev, :test], runtime: false},
      {:local_lib, path: "../local_lib"},
      {:sparse_dep, git: "https://github.com/example/mono.git", sparse: "sparse_dep"}
    ]
  end
end
'''

MIX_LOCK = '''%{
  "bunt": {:hex, :bunt, "1.0.0", "bunt-inner", [:mix], [], "hexpm", "bunt-outer"},
  "credo": {:hex, :credo, "1.7.5", "credo-inner", [:mix], [{:bunt, "~> 0.2.1 or ~> 1.0", [hex: :bunt, repo: "hexpm", optional: false]}], "hexpm", "credo-outer"},
  "jason": {:hex, :jason, "1.4.1", "jason-inner", [:mix], [{:decimal, "~> 1.0 or ~> 2.0", [hex: :decimal, repo: "hexpm", optional: true]}], "hexpm", "jason-outer"},
  "mime": {:hex, :mime, "2.0.5", "mime-inner", [:mix], [], "hexpm", "mime-outer"},
  "plug": {:hex, :plug, "1.15.3", "plug-inner", [:mix], [{:mime, "~> 1.0 or ~> 2.0", [hex: :mime, repo: "hexpm", optional: false]}, {:plug_crypto, "~> 1.1.1 or ~> 1.2 or ~> 2.0", [hex: :plug_crypto, repo: "hexpm", optional: false]}, {:telemetry, "~> 0.4.3 or ~> 1.0", [hex: :telemetry, repo: "hexpm", optional: false]}], "hexpm", "plug-outer"},
  "plug_crypto": {:hex, :plug_crypto, "2.0.0", "plug_crypto-inner", [:mix], [], "hexpm", "plug_crypto-outer"},
  "sparse_dep": {:git, "https://github.com/example/mono.git", "0123456789abcdef", [sparse: "sparse_dep"]},
}
'''

JASON_APP = '''{application,jason,
             [{modules,['Elixir.Jason','Elixir.Jason.Decoder']},
              {optional_applications,[decimal]},
              {applications,[kernel,stdlib,elixir,decimal]},
              {description,"A blazing fast JSON parser and generator in pure Elixir."},
              {registered,[]},
              {vsn,"1.4.1"}]}.
'''

PLUG_APP = '''%% generated by mix
{application,plug,
             [{modules,['Elixir.Plug','Elixir.Plug.Application']},
              {applications,[kernel,stdlib,elixir,logger,mime,plug_crypto,telemetry]},
              {description,"Compose web applications with functions"},
              {registered,[]},
              {vsn,"1.15.3"},
              {mod,{'Elixir.Plug.Application',[]}},
              {env,[{mimes,[]},{statuses,#{}}]}]}.
'''


def write_files(base: Path, files: dict[str, str]) -> None:
    """Create files (and parent directories) below ``base``."""
    for relative, content in files.items():
        path = base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


@pytest.fixture
def sample_mix_exs():
    """Sample mix.exs content for testing."""
    return MIX_EXS


@pytest.fixture
def sample_mix_lock():
    """Sample mix.lock content for testing."""
    return MIX_LOCK


@pytest.fixture
def mix_project(tmp_path):
    """Lay out a Mix project with fetched dependencies and return its root."""
    root = tmp_path / "demo"
    write_files(root, {
        "mix.exs": MIX_EXS,
        "mix.lock": MIX_LOCK,
        "lib/demo.ex": "defmodule Demo do\nend\n",
        "deps/jason/mix.exs": "defmodule Jason.Mixfile do\nend\n",
        "deps/jason/lib/jason.ex": "defmodule Jason do\nend\n",
        "deps/jason/ebin/jason.app": JASON_APP,
        "deps/plug/mix.exs": "defmodule Plug.MixProject do\nend\n",
        "deps/plug/lib/plug.ex": "defmodule Plug do\nend\n",
        "_build/dev/lib/plug/ebin/plug.app": PLUG_APP,
        "deps/sparse_dep/src/sparse_dep.erl": "-module(sparse_dep).\n-callback init() -> ok.\n",
        "deps/sparse_dep/src/sparse_dep_lexer.xrl": "Definitions.\n",
        "deps/sparse_dep/src/sparse_dep_parser.yrl": "Nonterminals expr.\n",
        "deps/sparse_dep/deps/inner/lib/inner.ex": "defmodule Inner do\nend\n",
    })
    write_files(tmp_path / "local_lib", {
        "mix.exs": "defmodule LocalLib.MixProject do\nend\n",
        "lib/local_lib.ex": "defmodule LocalLib do\nend\n",
    })
    return root


@pytest.fixture
def config_project(tmp_path):
    """Project with config/config.exs and config/prod.exs."""
    write_files(tmp_path, {
        "config/config.exs": '''import Config

config :myapp,
  level: :info,
  opts: [a: 1, b: 2]

config :logger, :console, format: "$time $message\\n"

import_config "#{config_env()}.exs"
''',
        "config/prod.exs": '''import Config

config :myapp,
  level: :warn,
  opts: [b: 3, c: 4],
  secret: System.get_env("SECRET")

if config_env() == :prod do
  config :myapp, nested: true
end
''',
    })
    return tmp_path
