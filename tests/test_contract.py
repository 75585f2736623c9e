import pytest

from ethgo.testutil.contract import Contract, Event, new_event


def test_empty_contract_source_frame():
    source = Contract().source()
    assert source.startswith("pragma solidity ^0.5.5;\npragma experimental ABIEncoderV2;\n")
    assert "contract Sample {\n" in source
    assert source.endswith("}")


def test_add_event_and_get_event():
    contract = Contract()
    event = new_event("A", "uint256", True, "uint256", False)
    contract.add_event(event)
    assert contract.get_event("A") is event
    assert contract.get_event("B") is None
    assert "event A(uint256 indexed val_0, uint256 val_1);" in contract.source()


def test_event_setter_uses_memory_for_strings():
    contract = Contract()
    contract.add_event(Event("S").add("string", False).add("uint8[]", False))
    source = contract.source()
    assert "function setterS(string memory val_0, uint8[] memory val_1) public payable {" in source
    assert "emit S(val_0, val_1);" in source


def test_event_add_chains():
    event = Event("A")
    assert event.add("uint256", True) is event
    assert len(event.fields) == 1


def test_event_signature_known_topic():
    event = new_event("Transfer", "address", True, "address", True, "uint256", False)
    assert event.sig() == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def test_signature_ignores_indexed_flag():
    assert new_event("A", "uint256", True).sig() == new_event("A", "uint256", False).sig()


def test_new_event_requires_pairs():
    with pytest.raises(ValueError):
        new_event("A", "uint256")


def test_emit_unknown_event_raises():
    with pytest.raises(ValueError):
        Contract().emit_event("setA1", "A", "1", "2")


def test_emit_event_function():
    contract = Contract()
    contract.add_event(new_event("A", "uint256", True, "uint256", True))
    contract.emit_event("setA1", "A", "1", "2")
    source = contract.source()
    assert "function setA1() public payable {\nemit A(1, 2);\n}" in source


def test_constructor():
    contract = Contract()
    contract.add_constructor("uint256", "address")
    source = contract.source()
    assert "uint256 public val_0;\naddress public val_1;\n" in source
    assert "constructor(uint256 local_0,address local_1) public {\n" in source
    assert "val_1 = local_1;\n" in source


def test_dual_caller():
    contract = Contract()
    contract.add_dual_caller("echo", "uint256", "bool")
    source = contract.source()
    assert "function echo(uint256 val_0,bool val_1) public view returns (uint256,bool) {" in source
    assert "return (val_0,val_1);" in source


def test_output_caller():
    contract = Contract()
    contract.add_output_caller("foo")
    assert "function foo () public view returns (uint256) {" in contract.source()


def test_callbacks_in_order():
    contract = Contract()
    contract.add_callback(lambda: "first")
    contract.add_callback(lambda: "second")
    source = contract.source()
    assert source.index("first") < source.index("second")
    assert source.endswith("second\n}")