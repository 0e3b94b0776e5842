from staffplan.modify.patch import apply_plan_update, current_lines, extract_plan_update


def test_extracts_balanced_object_and_explanation():
    content = 'PLAN_UPDATE:\n{"tasks":[{"a":1},{"b":{"c":2}}]}\nExplanation with a stray } character.'

    block = extract_plan_update(content)

    assert block.payload == '{"tasks":[{"a":1},{"b":{"c":2}}]}'
    assert block.explanation == "Explanation with a stray } character."


def test_braces_inside_strings_do_not_end_the_object():
    content = (
        'Sure. PLAN_UPDATE: {"tasks":[{"taskId":"C.1","lcat":"Dev","hours":10,'
        '"mathRationale":"uses {curly} and \\"quoted }\\" text"}]} Done.'
    )

    block = extract_plan_update(content)

    assert block.payload.endswith('text"}]}')
    assert block.explanation == "Done."


def test_no_marker_returns_none():
    assert extract_plan_update("What labor categories were used?") is None


def test_unbalanced_object_yields_empty_payload():
    block = extract_plan_update('PLAN_UPDATE:\n{"tasks": [')
    assert block.payload == ""


def test_apply_update_replaces_lines_wholesale():
    plan = {
        "rfpText": "RFP",
        "finalStaffingPlan": {
            "tasks": [
                {"taskId": "C.1", "lcat": "Dev", "hours": 100},
                {"taskId": "C.2", "lcat": "QA", "hours": 50},
            ]
        },
    }
    new_lines = [{"taskId": "C.1", "lcat": "Dev", "hours": 120}]

    updated = apply_plan_update(plan, new_lines)

    assert updated["finalStaffingPlan"]["tasks"] == new_lines
    assert updated["rfpText"] == "RFP"
    assert len(plan["finalStaffingPlan"]["tasks"]) == 2


def test_current_lines_reads_only_final_staffing_plan():
    assert current_lines(None) == []
    assert current_lines({"rfpText": "RFP"}) == []
    assert current_lines({"final_staffing_plan": {"tasks": [{"taskId": "C.1"}]}}) == []
    assert current_lines({"finalStaffingPlan": {"tasks": [{"taskId": "C.1"}]}}) == [{"taskId": "C.1"}]
