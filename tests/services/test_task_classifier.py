import pytest

from catalog_sync.models import TaskType
from catalog_sync.services.task_classifier import KeywordTaskClassifier, classify_task_type


@pytest.mark.parametrize(
    "text, expected",
    [
        ("text-to-video", TaskType.VIDEO),
        ("image-to-video", TaskType.VIDEO),
        ("text-to-speech", TaskType.AUDIO),
        ("Music Generation", TaskType.AUDIO),
        ("text-to-image", TaskType.TEXT),
        ("fal-ai/any-llm", TaskType.TEXT),
        ("image-to-image", TaskType.IMAGE),
        ("fal-ai/flux/dev", TaskType.IMAGE),
        ("3d", TaskType.MULTIMODAL),
        ("", TaskType.MULTIMODAL),
    ],
)
def test_default_rules_in_priority_order(text, expected):
    assert classify_task_type(text) == expected


def test_custom_rules_and_fallback():
    classifier = KeywordTaskClassifier(
        rules=[(TaskType.IMAGE, ("Upscale",))], fallback=TaskType.TEXT
    )

    assert classifier("clarity-upscaler") == TaskType.IMAGE
    assert classifier("text-to-video") == TaskType.TEXT
