import pytest

from toolchat.core.tool_calling import ToolCallExtractor, ToolCallSource, extract_tool_calls


@pytest.fixture
def extractor():
    return ToolCallExtractor()


def test_json_codeblock_with_surrounding_prose(extractor):
    text = (
        "好的，我来帮你查询一下。\n"
        "```json\n"
        '{"tool_name": "get_weather", "arguments": {"city": "北京"}}\n'
        "```\n"
        "稍等片刻。"
    )

    result = extractor.extract_with_details(text)

    assert result.success
    assert result.pattern_used == "json_codeblock"
    assert len(result.tool_calls) == 1
    call = result.tool_calls[0]
    assert call.name == "get_weather"
    assert call.arguments == {"city": "北京"}
    assert call.source == ToolCallSource.TEXT_PARSED


def test_two_json_codeblocks_are_returned_in_order(extractor):
    text = (
        "```json\n{\"tool_name\": \"get_current_time\", \"arguments\": {}}\n```\n"
        "然后\n"
        "```JSON\n{\"tool_name\": \"calculate\", \"arguments\": {\"expression\": \"1+1\"}}\n```"
    )

    calls = extractor.extract(text)

    assert [c.name for c in calls] == ["get_current_time", "calculate"]


def test_bare_object_as_instructed(extractor):
    text = '{\n  "tool_name": "get_current_time",\n  "arguments": { "format": "default" }\n}'

    result = extractor.extract_with_details(text)

    assert result.pattern_used == "outer_braces"
    assert result.tool_calls[0].arguments == {"format": "default"}


def test_standalone_line(extractor):
    text = (
        "我需要调用工具：\n"
        '   {"tool_name": "search_web", "arguments": {"query": "Python 3.13"}}   \n'
        "之后再回答。"
    )

    result = extractor.extract_with_details(text)

    assert result.pattern_used == "standalone_line"
    assert result.tool_calls[0].arguments == {"query": "Python 3.13"}


def test_plain_codeblock(extractor):
    text = (
        "```\n"
        "{\n"
        '  "tool_name": "calculate",\n'
        '  "arguments": {"expression": "2*3"}\n'
        "}\n"
        "```\n"
        "这是计算请求。"
    )

    result = extractor.extract_with_details(text)

    assert result.pattern_used == "plain_codeblock"
    assert result.tool_calls[0].name == "calculate"


def test_earlier_tier_wins(extractor):
    text = (
        '{"tool_name": "calculate", "arguments": {"expression": "1+1"}}\n'
        "```json\n{\"tool_name\": \"get_current_time\", \"arguments\": {}}\n```"
    )

    calls = extractor.extract(text)

    assert [c.name for c in calls] == ["get_current_time"]


def test_malformed_fenced_json_falls_through_to_later_tier(extractor):
    text = (
        "```json\n{\"tool_name\": \"calculate\", \"arguments\": {\"expression\": \"1+1\"}\n```\n"
        '{"tool_name": "get_current_time", "arguments": {}}'
    )

    calls = extractor.extract(text)

    assert [c.name for c in calls] == ["get_current_time"]


@pytest.mark.parametrize("text", [
    "",
    "今天北京晴，气温 3 度。",
    "集合 {1, 2, 3} 的并集是 {1, 2, 3, 4}。",
    "function f() { return 1; }",
    '```json\n{"name": "get_weather", "arguments": {"city": "北京"}}\n```',
])
def test_no_tool_call(extractor, text):
    assert extractor.extract(text) == []


@pytest.mark.parametrize("payload", [
    '{"tool_name": "get_weather"}',
    '{"arguments": {"city": "北京"}, "tool": "get_weather"}',
    '{"tool_name": "get_weather", "arguments": "北京"}',
    '{"tool_name": "", "arguments": {}}',
    '{"tool_name": "get_weather", "arguments": {"city": "北京"',
])
def test_partial_or_malformed_objects_are_discarded(extractor, payload):
    assert extractor.extract(f"调用：{payload}") == []


def test_unregistered_tool_name_is_still_extracted(extractor):
    calls = extractor.extract('{"tool_name": "fly_to_moon", "arguments": {}}')

    assert calls[0].name == "fly_to_moon"


def test_module_level_helper():
    calls = extract_tool_calls('{"tool_name": "get_current_time", "arguments": {}}')

    assert len(calls) == 1
