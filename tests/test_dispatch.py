from pathlib import Path

import pytest

from cmdtree import (
    CommandSpec,
    MissingParameterError,
    OptionSpec,
    UnmatchedArgumentError,
    parse,
)


def test_subcommand_chain(git, assert_parse):
    result = assert_parse(git, "--git-dir=/x clone -q -b main https://example.com/repo.git out")
    assert result.command_names == ["git", "clone"]
    assert len(result) == 2
    assert result.root.value("path") == Path("/x")

    clone = result.leaf
    assert clone is result[1]
    assert clone.value("quiet") is True
    assert clone.value("verbose") is False
    assert clone.value("branch") == "main"
    assert clone.value("<repository>") == "https://example.com/repo.git"
    assert clone.value("directory") == "out"
    assert clone.original_tokens == ["-q", "-b", "main", "https://example.com/repo.git", "out"]


def test_root_only(git, assert_parse):
    result = assert_parse(git, "--git-dir /x")
    assert result.command_names == ["git"]
    assert result.root is result.leaf


def test_subcommand_missing_positional(git, assert_parse):
    with pytest.raises(MissingParameterError) as e:
        assert_parse(git, "clone -q")
    assert str(e.value) == "Missing required parameter: <repository>"
    assert e.value.command_chain == ["git", "clone"]
    assert e.value.tokens == ["clone", "-q"]
    assert e.value.spec is git.subcommands["clone"]


def test_subcommand_unknown_option_not_seen_by_parent(git, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(git, "push --git-dir=/x origin")
    assert e.value.command_chain == ["git", "push"]


def test_subcommand_alias(git, assert_parse):
    result = assert_parse(git, "cl repo")
    assert result.command_names == ["git", "clone"]
    assert result.leaf.value("repository") == "repo"


def test_subcommand_name_is_positional_without_match(git, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(git, "status")
    assert str(e.value) == "Unmatched argument: status"


@pytest.mark.parametrize(
    "cmd, expected",
    [
        ("clo repo", "clone"),
        ("co", "commit"),
        ("p origin", "push"),
        ("push origin", "push"),
    ],
)
def test_abbreviated_subcommand(git, assert_parse, cmd, expected):
    git.abbreviate_subcommands = True
    assert assert_parse(git, cmd).leaf.spec.name == expected


def test_abbreviated_subcommand_ambiguous(git, assert_parse):
    git.abbreviate_subcommands = True
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(git, "c repo")
    assert str(e.value) == "Subcommand 'c' is not unique: it matches 'clone', 'cl', 'commit'"


def test_abbreviated_subcommand_disabled(git, assert_parse):
    with pytest.raises(UnmatchedArgumentError):
        assert_parse(git, "clo repo")


def test_parent_validated_before_handoff(git, assert_parse):
    git.add(OptionSpec(name="user", names="--user", required=True))
    with pytest.raises(MissingParameterError) as e:
        assert_parse(git, "clone repo")
    assert str(e.value) == "Missing required option '--user=<user>'"
    assert e.value.command_chain == ["git"]
    assert e.value.spec is git


def test_parent_defaults_applied_before_handoff(git, assert_parse):
    git.add(OptionSpec(name="user", names="--user", default="anonymous"))
    result = assert_parse(git, "push origin")
    assert result.root.value("user") == "anonymous"
    assert not result.root.has_matched("user")


def test_subcommand_stops_option_value(git, assert_parse):
    with pytest.raises(MissingParameterError) as e:
        assert_parse(git, "--git-dir clone repo")
    assert str(e.value) == "Expected parameter for option '--git-dir' but found 'clone'"


def test_subcommand_after_end_of_options(git, assert_parse):
    result = assert_parse(git, "-- commit -- -m")
    assert result.command_names == ["git", "commit"]
    assert result.leaf.value("files") == [Path("-m")]
    assert result.leaf.value("message") is None


def test_commit_files(git, assert_parse):
    result = assert_parse(git, 'commit -m "fix bug" a.txt b.txt')
    commit = result.leaf
    assert commit.value("message") == "fix bug"
    assert commit.value("-m") == "fix bug"
    assert commit.value("<file>") == [Path("a.txt"), Path("b.txt")]
    assert commit.matched == [commit.spec.find_option("-m"), commit.spec.positionals[0]]


def test_help_in_parent_skips_subcommand_validation(git, assert_parse):
    result = assert_parse(git, "--help")
    assert result.is_usage_help_requested
    assert result.command_names == ["git"]


def test_repeated_parses_are_independent(git):
    first = parse(git, ["push", "-f", "origin"])
    second = parse(git, ["push", "upstream"])
    assert first.leaf.value("force") is True
    assert second.leaf.value("force") is False
    assert first.leaf.value("repository") == "origin"
    assert second.leaf.value("repository") == "upstream"
    assert first.tokens == ("push", "-f", "origin")


def test_nested_subcommands(assert_parse):
    show = CommandSpec("show", [OptionSpec(name="verbose", names="-v", type=bool)])
    remote = CommandSpec("remote", [OptionSpec(name="verbose", names="-v", type=bool)], subcommands=[show])
    root = CommandSpec("git", subcommands=[remote])
    result = assert_parse(root, "remote -v show")
    assert result.command_names == ["git", "remote", "show"]
    assert result[1].value("verbose") is True
    assert result[2].value("verbose") is False
    assert show.qualified_name() == "git remote show"


def test_unmatched_allowed_per_level(git, assert_parse):
    git.subcommands["push"].unmatched_allowed = True
    result = assert_parse(git, "push origin extra --what")
    assert result.unmatched == ["extra", "--what"]
    assert result.root.unmatched == []
