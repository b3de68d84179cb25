from duplicates import detect_duplicate
from schemas import Child


def make_child(id, name, nickname=None, fatherName=None, motherName=None):
    return Child(
        id=id, name=name, nickname=nickname, displayName=nickname or name,
        avatar=name[0].upper(), fatherName=fatherName, motherName=motherName,
        createdAt="2024-01-01T00:00:00+00:00",
    )


def test_no_children_no_duplicate():
    assert detect_duplicate({"name": "Ana"}, []) == {"isDuplicate": False}


def test_exact_duplicate_same_parents_case_insensitive():
    existing = [make_child(1, "Ana", fatherName="Luis", motherName="Rosa")]
    result = detect_duplicate({"name": " Ana ", "fatherName": "luis", "motherName": "ROSA"}, existing)
    assert result["isDuplicate"] is True
    assert "verify" in result["message"]


def test_missing_parent_on_one_side_still_duplicate():
    existing = [make_child(1, "Ana", fatherName="Luis")]
    assert detect_duplicate({"name": "Ana"}, existing)["isDuplicate"] is True
    assert detect_duplicate({"name": "Ana", "motherName": "Rosa"}, existing)["isDuplicate"] is True


def test_different_parent_gives_suggestion():
    existing = [make_child(1, "Ana", fatherName="Luis")]
    result = detect_duplicate({"name": "Ana", "fatherName": "Pedro"}, existing)
    assert result["isDuplicate"] is False
    assert "Ana" in result["suggestion"]


def test_display_name_uses_nickname():
    existing = [make_child(1, "Ana", nickname="Anita")]
    assert detect_duplicate({"name": "Ana"}, existing) == {"isDuplicate": False}
    assert detect_duplicate({"name": "Mariana", "nickname": "Anita"}, existing)["isDuplicate"] is True


def test_exact_match_wins_over_collision():
    existing = [
        make_child(1, "Ana", fatherName="Pedro"),
        make_child(2, "Ana", fatherName="Luis"),
    ]
    assert detect_duplicate({"name": "Ana", "fatherName": "Luis"}, existing)["isDuplicate"] is True


def test_edit_excludes_self():
    existing = [make_child(1, "Ana", fatherName="Luis")]
    result = detect_duplicate({"name": "Ana", "fatherName": "Luis"}, existing, exclude_id=1)
    assert result == {"isDuplicate": False}
