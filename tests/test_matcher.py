import pytest

from cmdtree import (
    CommandSpec,
    MissingParameterError,
    OptionSpec,
    OverwrittenOptionError,
    PositionalParamSpec,
    TypeConversionError,
    UnmatchedArgumentError,
)


@pytest.fixture
def rvo():
    """``-r`` and ``-v`` flags, and ``-o <file>``."""

    def inner(**kwargs):
        return CommandSpec(
            "cmd",
            [
                OptionSpec(name="r", names="-r", type=bool),
                OptionSpec(name="v", names="-v", type=bool),
                OptionSpec(name="o", names="-o", label="<file>"),
            ],
            **kwargs,
        )

    return inner


@pytest.mark.parametrize(
    "cmd",
    [
        "-rvoout",
        "-rvo out",
        "-vro=out",
        "-r -v -o out",
        "-rv -o=out",
        "-vr -oout",
        "-o out -vr",
    ],
)
def test_clustered_short_options(rvo, assert_parse, cmd):
    result = assert_parse(rvo(), cmd)
    match = result.root
    assert match.value("r") is True
    assert match.value("v") is True
    assert match.value("o") == "out"
    assert match.unmatched == []


def test_clustered_short_options_disabled(rvo, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(rvo(posix_clustered_short_options=False), "-rv")
    assert str(e.value).startswith("Unknown option: -rv")


def test_clustered_residue_unknown(rvo, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(rvo(), "-vp1")
    assert str(e.value) == "Unknown option: -p1"


def test_unknown_option(rvo, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(rvo(), "-x")
    assert str(e.value) == "Unknown option: -x"
    assert e.value.token == "-x"


def test_unknown_option_did_you_mean(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="verbose", names="--verbose", type=bool)])
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(spec, "--verbos")
    assert str(e.value) == 'Unknown option: --verbos. Did you mean "--verbose"?'


def test_unknown_option_allowed(rvo, assert_parse):
    result = assert_parse(rvo(unmatched_allowed=True), "-x -vp1 foo")
    assert result.root.value("v") is True
    assert result.root.unmatched == ["-x", "-p1", "foo"]
    assert result.unmatched == ["-x", "-p1", "foo"]


def test_flag_attached_value(rvo, assert_parse):
    assert assert_parse(rvo(), "-v=false").root.value("v") is False
    assert assert_parse(rvo(), "-v=true").root.value("v") is True


def test_flag_ignores_detached_value(rvo, assert_parse):
    spec = rvo()
    spec.add(PositionalParamSpec(name="rest", type=list[str]))
    match = assert_parse(spec, "-v false").root
    assert match.value("v") is True
    assert match.value("rest") == ["false"]


def test_option_missing_value_at_end(rvo, assert_parse):
    with pytest.raises(MissingParameterError) as e:
        assert_parse(rvo(), "-o")
    assert str(e.value) == "Missing required parameter for option '-o' (<file>)"


def test_option_value_blocked_by_option(rvo, assert_parse):
    with pytest.raises(MissingParameterError) as e:
        assert_parse(rvo(), "-o -r")
    assert str(e.value) == "Expected parameter for option '-o' but found '-r'"


def test_option_value_unknown_option_like_is_consumed(rvo, assert_parse):
    assert assert_parse(rvo(), "-o -x").root.value("o") == "-x"


def test_option_specified_twice(rvo, assert_parse):
    with pytest.raises(OverwrittenOptionError) as e:
        assert_parse(rvo(), "-o a -o b")
    assert str(e.value) == "option '-o' (<file>) should be specified only once"


def test_flag_specified_twice(rvo, assert_parse):
    with pytest.raises(OverwrittenOptionError):
        assert_parse(rvo(), "-v -v")


def test_option_overwrite_allowed(rvo, assert_parse):
    assert assert_parse(rvo(overwritten_options_allowed=True), "-o a -o b").root.value("o") == "b"


def test_missing_required_option(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="b", names="-b", required=True)])
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "")
    assert str(e.value) == "Missing required option '-b=<b>'"


def test_missing_required_flag(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="force", names=("-f", "--force"), type=bool, required=True)])
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "")
    assert str(e.value) == "Missing required option '--force'"


def test_first_unmet_required_in_declaration_order(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            OptionSpec(name="b", names="-b", required=True),
            PositionalParamSpec(name="a", index=0),
        ],
    )
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "")
    assert e.value.arg is spec.args[0]


def test_long_option_attached_value(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="branch", names=("-b", "--branch"))])
    assert assert_parse(spec, "--branch=main").root.value("branch") == "main"
    assert assert_parse(spec, "--branch main").root.value("branch") == "main"
    assert assert_parse(spec, "--branch==main").root.value("branch") == "=main"


@pytest.fixture
def abbreviated():
    return CommandSpec(
        "cmd",
        [
            OptionSpec(name="verbose", names="--verbose", type=bool),
            OptionSpec(name="version", names="--version", type=bool),
            OptionSpec(name="output", names="--output-file"),
        ],
        abbreviate_options=True,
    )


def test_abbreviated_option(abbreviated, assert_parse):
    match = assert_parse(abbreviated, "--verb --out=a.txt").root
    assert match.value("verbose") is True
    assert match.value("version") is False
    assert match.value("output") == "a.txt"


def test_abbreviated_option_detached_value(abbreviated, assert_parse):
    assert assert_parse(abbreviated, "--out a.txt").root.value("output") == "a.txt"


def test_abbreviated_option_ambiguous(abbreviated, assert_parse):
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(abbreviated, "--ver")
    assert str(e.value) == "Option '--ver' is not unique: it matches '--verbose', '--version'"
    assert e.value.candidates == ("--verbose", "--version")


def test_abbreviation_disabled(abbreviated, assert_parse):
    abbreviated.abbreviate_options = False
    with pytest.raises(UnmatchedArgumentError):
        assert_parse(abbreviated, "--verb")


@pytest.mark.parametrize(
    "cmd, expected",
    [
        ("", False),
        ("--color", True),
        ("--no-color", False),
        ("--color=false", False),
        ("--no-color=false", True),
    ],
)
def test_negatable_flag(assert_parse, cmd, expected):
    spec = CommandSpec("cmd", [OptionSpec(name="color", names="--color", type=bool, negatable=True)])
    assert assert_parse(spec, cmd).root.value("color") is expected


def test_negatable_flag_with_true_default(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="color", names="--color", type=bool, negatable=True, default="true")])
    assert assert_parse(spec, "").root.value("color") is True
    assert assert_parse(spec, "--color").root.value("color") is False
    assert assert_parse(spec, "--no-color").root.value("color") is True


def test_map_option(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="props", names="-D", type=dict[str, int])])
    assert assert_parse(spec, "-D a=1 -D b=2").root.value("props") == {"a": 1, "b": 2}
    assert assert_parse(spec, "-Da=1 -Db=2").root.value("props") == {"a": 1, "b": 2}
    assert assert_parse(spec, "-D a=1 b=2").root.value("props") == {"a": 1, "b": 2}


def test_split_and_repetition_accumulate(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="nums", names="-n", type=list[int], split=",")])
    assert assert_parse(spec, "-n 1,2 -n 3").root.value("nums") == [1, 2, 3]


def test_variable_arity_stops_at_option(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            OptionSpec(name="files", names="-f", type=list[str]),
            OptionSpec(name="v", names="-v", type=bool),
        ],
    )
    match = assert_parse(spec, "-f a b -v").root
    assert match.value("files") == ["a", "b"]
    assert match.value("v") is True


def test_fixed_arity_option(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="point", names="-p", type=tuple[int, int])])
    assert assert_parse(spec, "-p 1 2").root.value("point") == (1, 2)
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "-p 1")
    assert e.value.values_so_far == ["1"]


def test_end_of_options(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            OptionSpec(name="r", names="-r", type=bool),
            PositionalParamSpec(name="files", type=list[str]),
        ],
    )
    match = assert_parse(spec, "-r -- -r --foo x").root
    assert match.value("r") is True
    assert match.value("files") == ["-r", "--foo", "x"]


def test_end_of_options_custom_delimiter(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="files", type=list[str])], end_of_options_delimiter="::")
    assert assert_parse(spec, ":: -x").root.value("files") == ["-x"]


def test_end_of_options_disabled(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="files", type=list[str])], end_of_options_delimiter="")
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(spec, "a -- b")
    assert str(e.value) == "Unknown option: --"


@pytest.mark.parametrize("cmd, expected", [("-5", -5), ("-12", -12), ("3", 3)])
def test_negative_number_positional(assert_parse, cmd, expected):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="n", type=int, index=0)])
    assert assert_parse(spec, cmd).root.value("n") == expected


def test_negative_number_option_value(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="offset", names="-o", type=float)])
    assert assert_parse(spec, "-o -1.5").root.value("offset") == -1.5


def test_lone_dash_is_positional(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="file", index=0)])
    assert assert_parse(spec, "-").root.value("file") == "-"


def test_positional_index_ranges(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            PositionalParamSpec(name="first", index=0),
            PositionalParamSpec(name="middle", type=list[str], index="1..2"),
            PositionalParamSpec(name="rest", type=list[str], index="3..*"),
        ],
    )
    match = assert_parse(spec, "a b c d e").root
    assert match.value("first") == "a"
    assert match.value("middle") == ["b", "c"]
    assert match.value("rest") == ["d", "e"]


def test_overlapping_positionals_roll_forward(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            PositionalParamSpec(name="a", index="0..*"),
            PositionalParamSpec(name="b", index="0..*"),
        ],
    )
    match = assert_parse(spec, "x y").root
    assert match.value("a") == "x"
    assert match.value("b") == "y"


def test_unnamed_overlapping_positionals_roll_forward(assert_parse):
    first, second = PositionalParamSpec(index="0..1"), PositionalParamSpec(index="0..1")
    match = assert_parse(CommandSpec("cmd", [first, second]), "a b").root
    assert match.values == {first: "a", second: "b"}
    assert match.matched == [first, second]


def test_unnamed_required_positionals_each_checked(assert_parse):
    first = PositionalParamSpec(index="0..*", required=True)
    second = PositionalParamSpec(index="0..*", required=True)
    with pytest.raises(MissingParameterError) as e:
        assert_parse(CommandSpec("cmd", [first, second]), "a")
    assert e.value.arg is second


def test_positional_fixed_arity_consumes_at_one_index(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="pair", type=list[str], index=0, arity=2)])
    match = assert_parse(spec, "a b").root
    assert match.value("pair") == ["a", "b"]
    assert [x.index for x in match.tokens[spec.positionals[0]]] == [0, 1]


def test_positional_variable_arity_consumes_rest(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="files", type=list[str], index=0)])
    assert assert_parse(spec, "a b c").root.value("files") == ["a", "b", "c"]


def test_positional_consumption_stops_at_option(rvo, assert_parse):
    spec = rvo(unmatched_allowed=True)
    spec.add(PositionalParamSpec(name="files", type=list[str]))
    match = assert_parse(spec, "a -v b -x c").root
    assert match.value("files") == ["a", "b", "c"]
    assert match.value("v") is True
    assert match.unmatched == ["-x"]


def test_positional_consumption_limited_by_index(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            PositionalParamSpec(name="head", type=list[str], index="0..1"),
            PositionalParamSpec(name="tail", index=2),
        ],
    )
    match = assert_parse(spec, "a b c").root
    assert match.value("head") == ["a", "b"]
    assert match.value("tail") == "c"


def test_positional_consumption_stops_at_subcommand(assert_parse):
    child = CommandSpec("run")
    spec = CommandSpec("cmd", [PositionalParamSpec(name="files", type=list[str])], subcommands=[child])
    result = assert_parse(spec, "a b run")
    assert result.root.value("files") == ["a", "b"]
    assert result.command_names == ["cmd", "run"]


def test_positionals_interleaved_with_options(rvo, assert_parse):
    spec = rvo()
    spec.add(PositionalParamSpec(name="src", index=0))
    spec.add(PositionalParamSpec(name="dst", index=1))
    match = assert_parse(spec, "a -v b").root
    assert (match.value("src"), match.value("dst"), match.value("v")) == ("a", "b", True)


def test_missing_positional(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="a", index=0)])
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "")
    assert str(e.value) == "Missing required parameter: <a>"


def test_positional_too_few_values(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="files", type=list[str], arity="2..*")])
    with pytest.raises(MissingParameterError) as e:
        assert_parse(spec, "a")
    assert str(e.value) == (
        "Positional parameter at index 0..* (<files>) requires at least 2 values, but only 1 were specified: ['a']"
    )


def test_positional_conversion_error(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="a", type=int, index=0)])
    with pytest.raises(TypeConversionError) as e:
        assert_parse(spec, "x")
    assert str(e.value) == "Invalid value for positional parameter at index 0 (<a>): 'x' is not an int"


@pytest.mark.parametrize(
    "cmd, message",
    [
        ("a b", "Unmatched argument: b"),
        ("a b c", "Unmatched arguments: b, c"),
    ],
)
def test_unmatched_positional(assert_parse, cmd, message):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="a", index=0)])
    with pytest.raises(UnmatchedArgumentError) as e:
        assert_parse(spec, cmd)
    assert str(e.value) == message


def test_required_checked_before_unmatched(assert_parse):
    spec = CommandSpec(
        "cmd", [PositionalParamSpec(name="a", index=0), OptionSpec(name="b", names="-b", required=True)]
    )
    with pytest.raises(MissingParameterError):
        assert_parse(spec, "x y")


def test_help_requested_skips_required(assert_parse):
    spec = CommandSpec("cmd", [PositionalParamSpec(name="a", index=0)], mixin_standard_help_options=True)
    result = assert_parse(spec, "-h")
    assert result.is_usage_help_requested
    assert not result.is_version_help_requested
    assert assert_parse(spec, "--version").is_version_help_requested


def test_defaults_applied(assert_parse):
    spec = CommandSpec(
        "cmd",
        [
            OptionSpec(name="left", names="-l", type=int, default="2"),
            OptionSpec(name="right", names="-r", type=int, initial=3),
            OptionSpec(name="name", names="-n"),
            OptionSpec(name="tags", names="-t", type=list[str], default="a,b", split=","),
        ],
    )
    match = assert_parse(spec, "-r 8").root
    assert match.value("left") == 2
    assert match.value("right") == 8
    assert match.value("name") is None
    assert match.value("name", "fallback") == "fallback"
    assert match.value("tags") == ["a", "b"]
    assert not match.has_matched("left")
    assert match.has_matched("right")
    assert spec.args[0] in match.defaults
    assert spec.args[2] not in match.defaults


def test_default_conversion_error(assert_parse):
    spec = CommandSpec("cmd", [OptionSpec(name="left", names="-l", type=int, default="two")])
    with pytest.raises(TypeConversionError) as e:
        assert_parse(spec, "")
    assert e.value.token.source == "default"


def test_command_match_bookkeeping(rvo, assert_parse):
    spec = rvo()
    match = assert_parse(spec, "-o out -v").root
    assert match.matched == [spec.args[2], spec.args[1]]
    assert [t.value for t in match.tokens[spec.args[2]]] == ["out"]
    assert match.original_tokens == ["-o", "out", "-v"]
    assert match.named_values() == {"r": False, "v": True, "o": "out"}
    assert match.arg_values() == [False, True, "out"]
    with pytest.raises(KeyError):
        match.value("nope")


def test_debug_trace(rvo, assert_parse, caplog):
    with caplog.at_level("DEBUG", logger="cmdtree"):
        assert_parse(rvo(), "-rv")
    assert "[cmd] Found option '-r'" in caplog.messages
    assert "[cmd] Found option '-v'" in caplog.messages
