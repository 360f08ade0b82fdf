from dataclasses import replace

from tempodeck.models import METER_2_SIMPLE, Accent, Content, Header, Meter, Profile
from tempodeck.xml_codec import (
    ConversionError,
    ParseFailure,
    format_bool,
    parse_bool,
    parse_int,
    parse_profiles,
    serialize_profiles,
)

DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<tempodeck-profiles version="0.1.0">
  <PROFILE ID="alpha">
    <Header>
      <Title>Warmup</Title>
      <description>Slow &amp; steady</description>
      <colour>blue</colour>
    </Header>
    <content>
      <tempo> 96 </tempo>
      <meter-section>
        <enabled>TRUE</enabled>
        <meter-select>meter-custom</meter-select>
        <meter-list>
          <meter id="meter-custom">
            <beats>3</beats>
            <division>0</division>
            <accent-pattern>
              <accent level="3"/>
              <accent LEVEL="1"/>
              <accent level="1"/>
            </accent-pattern>
          </meter>
          <meter id="meter-9-odd">
            <beats>9</beats>
          </meter>
        </meter-list>
      </meter-section>
      <trainer-section>
        <enabled>1</enabled>
        <start>60</start>
        <target>140</target>
        <accel>5</accel>
      </trainer-section>
    </content>
  </PROFILE>
  <profile id="beta">
    <header><title>Second</title></header>
  </profile>
</tempodeck-profiles>
"""


def _parse(text: str) -> dict[str, Profile]:
    return parse_profiles([text.encode("utf-8")]).profiles


def test_parse_bool_rules() -> None:
    assert parse_bool("True") is True
    assert parse_bool("false") is False
    assert parse_bool("1") is True
    assert parse_bool("0") is False
    assert parse_bool(" -2 ") is True
    for text in ("yes", "garbage", "", None):
        try:
            parse_bool(text)
            raise AssertionError(f"Expected ConversionError for {text!r}.")
        except ConversionError:
            pass


def test_parse_int_rules() -> None:
    assert parse_int(" 90\n") == 90
    assert parse_int("-3") == -3
    for text in ("1.5", "fast", "", "12abc"):
        try:
            parse_int(text)
            raise AssertionError(f"Expected ConversionError for {text!r}.")
        except ConversionError:
            pass


def test_format_bool_writes_integer_text() -> None:
    assert format_bool(True) == "1"
    assert format_bool(False) == "0"


def test_parse_document_fields_and_order() -> None:
    parsed = parse_profiles([DOCUMENT.encode("utf-8")])
    assert parsed.order == ["alpha", "beta"]
    assert parsed.skipped_fields == 0

    alpha = parsed.profiles["alpha"]
    assert alpha.header == Header(title="Warmup", description="Slow & steady")
    assert alpha.content.tempo == 96
    assert alpha.content.meter_enabled is True
    assert alpha.content.meter_select == "meter-custom"
    assert alpha.content.meter_custom == Meter(beats=3, division=0, accents=(Accent.STRONG, Accent.WEAK, Accent.WEAK))
    assert alpha.content.meter_2_simple == METER_2_SIMPLE
    assert alpha.content.trainer_enabled is True
    assert (alpha.content.trainer_start, alpha.content.trainer_target, alpha.content.trainer_accel) == (60, 140, 5)

    beta = parsed.profiles["beta"]
    assert beta.header.title == "Second"
    assert beta.content == Content()


def test_parse_in_small_chunks_matches_single_feed() -> None:
    data = DOCUMENT.encode("utf-8")
    chunks = [data[index : index + 7] for index in range(0, len(data), 7)]
    assert parse_profiles(chunks).profiles == _parse(DOCUMENT)


def test_duplicate_profile_ids_merge_in_first_position() -> None:
    text = """<tempodeck-profiles>
      <profile id="a"><header><title>A</title></header><content><tempo>100</tempo></content></profile>
      <profile id="b"><header><title>B</title></header></profile>
      <profile id="a"><content><tempo>140</tempo></content></profile>
    </tempodeck-profiles>"""
    parsed = parse_profiles([text.encode("utf-8")])
    assert parsed.order == ["a", "b"]
    assert len(parsed.profiles) == 2
    assert parsed.profiles["a"].header.title == "A"
    assert parsed.profiles["a"].content.tempo == 140


def test_bad_field_is_skipped_without_aborting_import() -> None:
    text = """<tempodeck-profiles>
      <profile id="a">
        <header><title>Kept</title></header>
        <content>
          <tempo>fast</tempo>
          <trainer-section><enabled>maybe</enabled><start>70</start></trainer-section>
        </content>
      </profile>
    </tempodeck-profiles>"""
    parsed = parse_profiles([text.encode("utf-8")])
    profile = parsed.profiles["a"]
    assert parsed.skipped_fields == 2
    assert profile.header.title == "Kept"
    assert profile.content.tempo == 120
    assert profile.content.trainer_enabled is False
    assert profile.content.trainer_start == 70


def test_meter_accent_mismatch_is_normalized() -> None:
    text = """<tempodeck-profiles><profile id="a"><content><meter-section><meter-list>
      <meter id="meter-2-simple"><beats>2</beats><division>2</division>
        <accent-pattern><accent level="3"/><accent level="x"/></accent-pattern>
      </meter>
    </meter-list></meter-section></content></profile></tempodeck-profiles>"""
    parsed = parse_profiles([text.encode("utf-8")])
    assert parsed.skipped_fields == 1
    meter = parsed.profiles["a"].content.meter_2_simple
    assert meter.accents == (Accent.STRONG, Accent.OFF, Accent.OFF, Accent.OFF)


def test_profile_without_id_is_ignored() -> None:
    text = "<tempodeck-profiles><profile><header><title>Lost</title></header></profile></tempodeck-profiles>"
    parsed = parse_profiles([text.encode("utf-8")])
    assert parsed.profiles == {}
    assert parsed.order == []


def test_empty_stream_is_empty_collection() -> None:
    parsed = parse_profiles([])
    assert parsed.profiles == {}
    assert parsed.order == []


def test_malformed_document_raises_parse_failure() -> None:
    for text in ("<tempodeck-profiles><profile id='a'>", "not markup at all", "<a></b>"):
        try:
            parse_profiles([text.encode("utf-8")])
            raise AssertionError(f"Expected ParseFailure for {text!r}.")
        except ParseFailure:
            pass


def test_serialize_layout_and_escaping() -> None:
    profile = Profile(
        header=Header(title='Fast & "Loud" <x>', description="it's"),
        content=replace(Content(), meter_enabled=True),
    )
    text = serialize_profiles({"id-1": profile}, ["id-1"], "9.9")
    lines = text.splitlines()
    assert lines[0] == '<?xml version="1.0" encoding="UTF-8"?>'
    assert lines[1] == '<tempodeck-profiles version="9.9">'
    assert lines[2] == '  <profile id="id-1">'
    assert lines[-1] == "</tempodeck-profiles>"
    assert "<title>Fast &amp; &quot;Loud&quot; &lt;x&gt;</title>" in text
    assert "<description>it&apos;s</description>" in text
    assert "        <enabled>1</enabled>" in lines
    assert text.count("<meter id=") == 9
    assert text.count("<accent level=") == sum(meter.pulse_count for _, meter in profile.content.meters())


def test_serialize_then_parse_round_trip() -> None:
    custom = Meter(beats=5, division=3, accents=(Accent.STRONG, Accent.WEAK))
    profiles = {
        "b": Profile(
            header=Header(title="Line\r\nbreaks & <tags>", description="  padded  "),
            content=replace(
                Content(),
                tempo=212,
                meter_enabled=True,
                meter_select="meter-2-compound",
                meter_custom=custom,
                trainer_enabled=True,
                trainer_start=90,
                trainer_target=180,
                trainer_accel=3,
            ),
        ),
        "a": Profile(header=Header(title="", description="")),
        "tab\tand\nnewline": Profile(header=Header(title="\tindented")),
    }
    order = ["b", "a", "tab\tand\nnewline"]
    parsed = parse_profiles([serialize_profiles(profiles, order, "1.0").encode("utf-8")])
    assert parsed.order == order
    assert parsed.profiles == profiles
    assert parsed.skipped_fields == 0


def test_serialize_drops_characters_markup_cannot_hold() -> None:
    profile = Profile(header=Header(title="bell\x07"))
    parsed = parse_profiles([serialize_profiles({"a": profile}, ["a"], "1").encode("utf-8")])
    assert parsed.profiles["a"].header.title == "bell"


def test_overlong_integer_is_a_conversion_error() -> None:
    try:
        parse_int("9" * 5000)
        raise AssertionError("Expected ConversionError for a 5000-digit integer.")
    except ConversionError:
        pass

    digits = "9" * 5000
    text = (
        "<tempodeck-profiles><profile id='a'><content>"
        f"<tempo>{digits}</tempo>"
        "</content></profile></tempodeck-profiles>"
    )
    parsed = parse_profiles([text.encode("utf-8")])
    assert parsed.skipped_fields == 1
    assert parsed.profiles["a"].content.tempo == 120


def test_huge_meter_is_clamped_on_import() -> None:
    text = """<tempodeck-profiles><profile id="a"><content><meter-section><meter-list>
      <meter id="meter-custom"><beats>2000000000</beats><division>2000000000</division></meter>
    </meter-list></meter-section></content></profile></tempodeck-profiles>"""
    meter = parse_profiles([text.encode("utf-8")]).profiles["a"].content.meter_custom
    assert (meter.beats, meter.division) == (12, 4)
    assert len(meter.accents) == 48


def test_attribute_whitespace_is_written_as_character_references() -> None:
    text = serialize_profiles({"a\tb\nc": Profile()}, ["a\tb\nc"], "1")
    assert '<profile id="a&#9;b&#10;c">' in text


def test_serialize_drops_lone_surrogates() -> None:
    profile = Profile(header=Header(title="bad\udcff"))
    data = serialize_profiles({"a\udc80": profile}, ["a\udc80"], "1").encode("utf-8")
    parsed = parse_profiles([data])
    assert parsed.order == ["a"]
    assert parsed.profiles["a"].header.title == "bad"
