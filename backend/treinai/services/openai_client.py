from __future__ import annotations
import asyncio, json, logging
from typing import List, Dict, Any, Optional
from openai import OpenAI, APIConnectionError, APITimeoutError, RateLimitError, OpenAIError
from pydantic import ValidationError

from treinai.config import OPENAI_MODEL, OPENAI_TIMEOUT_S, TRAINER_SYSTEM_PROMPT
from treinai.schemas import ExerciseSuggestion, MacroTargets

logger = logging.getLogger(__name__)

SUGGESTION_COUNT = 6

_client: Optional[OpenAI] = None


class GenerationError(Exception):
    """Falha da IA: erro de API, timeout, resposta vazia ou fora do formato."""


class GenerationTimeout(GenerationError):
    pass


def _get_client() -> OpenAI:
    # OPENAI_API_KEY é lido do env na primeira chamada, não no import
    global _client
    if _client is None:
        _client = OpenAI()
    return _client


EXERCISE_SCHEMA = {
    "type": "object",
    "properties": {
        "exercises": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "category": {"type": "string"},
                    "sets": {"type": "integer"},
                    "reps": {"type": "string"},
                    "rest": {"type": "integer"},
                },
                "required": ["name", "category", "sets", "reps", "rest"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["exercises"],
    "additionalProperties": False,
}

MACRO_SCHEMA = {
    "type": "object",
    "properties": {
        "calories": {"type": "integer"},
        "protein": {"type": "integer"},
        "carbs": {"type": "integer"},
        "fat": {"type": "integer"},
    },
    "required": ["calories", "protein", "carbs", "fat"],
    "additionalProperties": False,
}


def _extract_json(raw_json_text: Optional[str]) -> Any:
    if not raw_json_text or not raw_json_text.strip():
        raise GenerationError("A IA retornou uma resposta vazia.")
    raw_json_text = raw_json_text.strip()

    # o modelo às vezes embrulha o JSON em bloco de código
    if raw_json_text.startswith("```json"):
        raw_json_text = raw_json_text[7:].strip()
    if raw_json_text.endswith("```"):
        raw_json_text = raw_json_text[:-3].strip()

    try:
        return json.loads(raw_json_text)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Resposta da IA não é JSON válido: {e}") from e


async def generate_json(prompt: str, schema_name: str, schema: Dict[str, Any]) -> Any:
    """
    generate(prompt, schema) -> JSON estruturado. Toda falha vira GenerationError,
    inclusive timeout (nunca fica pendurado).
    """
    messages = [
        {"role": "system", "content": TRAINER_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    def _call():
        return _get_client().chat.completions.create(
            model=OPENAI_MODEL,
            messages=messages,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
            timeout=OPENAI_TIMEOUT_S,
        )

    try:
        resp = await asyncio.wait_for(asyncio.to_thread(_call), timeout=OPENAI_TIMEOUT_S + 5)
    except (asyncio.TimeoutError, APITimeoutError) as e:
        raise GenerationTimeout("A IA demorou demais para responder.") from e
    except (RateLimitError, APIConnectionError, OpenAIError) as e:
        logger.exception("OpenAI error")
        raise GenerationError(f"OpenAI error: {e}") from e

    try:
        raw = resp.choices[0].message.content
    except (IndexError, AttributeError) as e:
        raise GenerationError("A IA retornou uma resposta vazia.") from e
    return _extract_json(raw)


async def suggest_exercises(student_info: str, muscle_group: Optional[str] = None) -> List[ExerciseSuggestion]:
    focus = muscle_group or "objetivo do aluno"
    focus_prompt = f" focado especificamente em {muscle_group}" if muscle_group else ""
    prompt = (
        f"Com base nas informações do aluno: {student_info}, sugira uma lista de "
        f"{SUGGESTION_COUNT} exercícios para um treino{focus_prompt}.\n"
        f"Certifique-se de que TODOS os exercícios sejam relacionados a {focus}.\n"
        "Retorne estritamente um objeto JSON com a chave \"exercises\" conforme o esquema."
    )
    data = await generate_json(prompt, "exercise_suggestions", EXERCISE_SCHEMA)

    items = data.get("exercises") if isinstance(data, dict) else data
    if not isinstance(items, list) or not items:
        raise GenerationError("A IA não retornou exercícios.")
    try:
        return [ExerciseSuggestion.model_validate(item) for item in items]
    except ValidationError as e:
        raise GenerationError(f"Sugestão de exercício fora do formato: {e}") from e


async def suggest_macros(student_info: str) -> MacroTargets:
    prompt = (
        f"Com base no aluno: {student_info}, sugira uma meta calórica e divisão de macros "
        "(Proteína, Carbo, Gordura) em gramas para um dia."
    )
    data = await generate_json(prompt, "macro_targets", MACRO_SCHEMA)
    if not isinstance(data, dict) or not data:
        raise GenerationError("A IA não retornou metas de macros.")
    missing = {"calories", "protein", "carbs", "fat"} - set(data)
    if missing:
        raise GenerationError(f"Metas de macros incompletas: {sorted(missing)}")
    try:
        return MacroTargets.model_validate(data)
    except ValidationError as e:
        raise GenerationError(f"Metas de macros fora do formato: {e}") from e
