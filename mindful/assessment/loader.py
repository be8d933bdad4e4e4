import os, yaml
from functools import lru_cache
from typing import Dict, Any

QUESTIONS_PATH = os.path.join(os.path.dirname(__file__), "questions.yaml")

@lru_cache(maxsize=1)
def load_questionnaire() -> Dict[str, Any]:
    with open(QUESTIONS_PATH, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    ids = [q["id"] for q in data["questions"]]
    if len(ids) != len(set(ids)):
        raise ValueError("duplicate question id in questions.yaml")
    return data

def load_questions() -> list[Dict[str, Any]]:
    return load_questionnaire()["questions"]
