from __future__ import annotations

import json

import pytest

from study_smarts.quizzer import generator as gen

from fixtures import ChatClientStub


def _reply(questions) -> str:
    return "```json\n" + json.dumps({"questions": questions}) + "\n```"


def test_generate_quiz_normalizes_model_output() -> None:
    client = ChatClientStub(
        _reply(
            [
                {
                    "question": "Capital of France?",
                    "options": ["Paris", "Rome", "Paris", ""],
                    "answer": "paris",
                    "reason": "It is.",
                },
                {
                    "stem": "6 x 7?",
                    "choices": [{"text": "42"}, {"text": "36"}],
                    "answer": "A",
                    "explanation": "Arithmetic.",
                },
                {"question": "Index answer", "options": ["x", "y"], "answer": 1},
                {"question": "Bad answer", "options": ["x", "y"], "answer": "z"},
                {"question": "One option", "options": ["x"], "answer": "x"},
                "not a dict",
            ]
        )
    )

    quiz = gen.generate_quiz(
        "Material",
        num_questions=5,
        client=client,
        label="week-1",
        document_summary="Summary",
    )

    assert len(quiz) == 3
    assert quiz[0].options == ("Paris", "Rome")
    assert quiz[0].answer == "Paris"
    assert quiz[1].answer == "42"
    assert quiz[1].explanation == "Arithmetic."
    assert quiz[2].answer == "y"
    assert quiz.label == "week-1"
    assert quiz.hints_enabled
    assert "Count: 5" in client.last_user_prompt


def test_generate_quiz_respects_limit_and_focus() -> None:
    items = [
        {"question": f"Q{i}", "options": ["a", "b"], "answer": "a"}
        for i in range(4)
    ]
    client = ChatClientStub(json.dumps(items))

    quiz = gen.generate_quiz(
        "Material", num_questions=2, client=client, focus="recursion"
    )

    assert [q.question for q in quiz.questions] == ["Q0", "Q1"]
    assert "Focus: recursion" in client.last_user_prompt


def test_generate_quiz_errors() -> None:
    with pytest.raises(ValueError):
        gen.generate_quiz("text", num_questions=0, client=ChatClientStub())
    with pytest.raises(gen.QuizGenerationError, match="empty"):
        gen.generate_quiz("   ", client=ChatClientStub())
    with pytest.raises(gen.QuizGenerationError, match="no usable"):
        gen.generate_quiz("text", client=ChatClientStub("not json"))


def test_generate_quiz_uses_default_client(openai_factory) -> None:
    openai_factory.replies.append(
        _reply([{"question": "Q", "options": ["a", "b"], "answer": "b"}])
    )

    quiz = gen.generate_quiz("Material")

    assert quiz[0].answer == "b"
    assert openai_factory.last.calls[0]["model"] == "gpt-4o-mini"


def test_summarize_document() -> None:
    client = ChatClientStub("Overview.\n- point")

    summary = gen.summarize_document(
        "Long text", client=client, max_tokens=42
    )

    assert summary == "Overview.\n- point"
    assert client.calls[0]["max_tokens"] == 42
    assert "Long text" in client.last_user_prompt
    with pytest.raises(gen.QuizGenerationError):
        gen.summarize_document("", client=client)
    with pytest.raises(gen.QuizGenerationError):
        gen.summarize_document("text", client=ChatClientStub(""))


def test_chat_with_bot_sends_one_message() -> None:
    client = ChatClientStub("Photosynthesis turns light into sugar.")

    reply = gen.chat_with_bot("  What is photosynthesis? ", client=client)

    assert reply == "Photosynthesis turns light into sugar."
    assert len(client.calls) == 1
    call = client.calls[0]
    assert call["temperature"] == 0.7
    assert "StudySmarts" in call["messages"][0]["content"]
    assert client.last_user_prompt == "What is photosynthesis?"


def test_chat_with_bot_rejects_empty_input_and_reply() -> None:
    client = ChatClientStub("")
    with pytest.raises(gen.QuizGenerationError):
        gen.chat_with_bot("   ", client=client)
    assert client.calls == []
    with pytest.raises(gen.QuizGenerationError):
        gen.chat_with_bot("hello", client=client)
