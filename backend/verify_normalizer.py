from app.services.analysis.normalizer import map_similar_tickets, normalize_body


def main() -> None:
    shapes = [
        ('{"answer_draft": "A, B, C"}', "A, B, C"),
        ('{"output": {"answer": "wrapped"}}', "wrapped"),
        ('{"result": {"suggestion": "use step 1"}}', "use step 1"),
        ('noise before ```json\n{"message": "fenced"}\n```', "fenced"),
        ("not json at all", ""),
    ]
    for raw, expected in shapes:
        result = normalize_body(raw)
        assert result.answer == expected, (raw, result.answer)
        assert result.success, raw

    result = normalize_body('{"next_best_actions": "Refund\\nEscalate", "questions": "What OS?; Which browser?"}')
    assert result.nba == ["Refund", "Escalate"], result.nba
    assert result.proposed_questions == ["What OS?", "Which browser?"], result.proposed_questions

    cards = map_similar_tickets([{"ticketId": "T-1", "relevance_score": "0.42"}, "loose text"])
    assert [c.id for c in cards] == ["T-1", "sim-1"], cards
    assert cards[0].relevance == 42, cards[0].relevance
    assert cards[1].issue_desc == "loose text", cards[1]


if __name__ == "__main__":
    main()
    print("OK")
