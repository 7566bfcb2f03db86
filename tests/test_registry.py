import pytest

from notebook_agent.errors import DuplicateToolError
from notebook_agent.registry import ToolRegistry

from conftest import BrokenTool, EchoTool, FlakySqlTool


def test_duplicate_name_is_rejected():
    registry = ToolRegistry([EchoTool()])
    with pytest.raises(DuplicateToolError) as excinfo:
        registry.register(EchoTool())
    assert excinfo.value.name == "echo"
    assert len(registry) == 1


def test_list_tools_keeps_registration_order():
    registry = ToolRegistry([FlakySqlTool(), EchoTool(), BrokenTool()])
    assert [d.name for d in registry.list_tools()] == ["sql", "echo", "broken"]


def test_get_unknown_returns_none():
    registry = ToolRegistry([EchoTool()])
    assert registry.get("nope") is None
    assert "nope" not in registry
    assert registry.get("echo") is not None


def test_definition_carries_schema_and_repair_flag():
    registry = ToolRegistry([EchoTool(), FlakySqlTool()])
    echo, sql = registry.list_tools()
    assert echo.parameter_schema["properties"]["text"]["type"] == "string"
    assert echo.repairable is False
    assert sql.repairable is True


def test_closed_registry_rejects_registration():
    registry = ToolRegistry([EchoTool()]).close()
    assert registry.closed
    with pytest.raises(RuntimeError):
        registry.register(FlakySqlTool())
