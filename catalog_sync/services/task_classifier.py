"""
Task-type classification for catalog models

A heuristic keyword classifier: rules are checked in order and the first
rule with a keyword contained in the (lower-cased) text wins. The
orchestrator accepts any ``Callable[[str], TaskType]``, so the rules can be
swapped without touching the sync.
"""

from collections.abc import Callable, Sequence

from catalog_sync.models import TaskType

TaskClassifier = Callable[[str], TaskType]

DEFAULT_TASK_RULES: tuple[tuple[TaskType, tuple[str, ...]], ...] = (
    (TaskType.VIDEO, ("video",)),
    (TaskType.AUDIO, ("audio", "sound", "music", "speech")),
    (TaskType.TEXT, ("text", "caption", "llm")),
    (TaskType.IMAGE, ("image", "flux", "stable")),
)


class KeywordTaskClassifier:
    """Ordered-priority keyword matcher"""

    def __init__(
        self,
        rules: Sequence[tuple[TaskType, Sequence[str]]] = DEFAULT_TASK_RULES,
        fallback: TaskType = TaskType.MULTIMODAL,
    ):
        self.rules = [(task_type, tuple(k.lower() for k in keywords)) for task_type, keywords in rules]
        self.fallback = fallback

    def __call__(self, text: str) -> TaskType:
        lower = (text or "").lower()
        for task_type, keywords in self.rules:
            if any(keyword in lower for keyword in keywords):
                return task_type
        return self.fallback


classify_task_type: TaskClassifier = KeywordTaskClassifier()
