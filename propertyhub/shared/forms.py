"""Helpers for endpoints that accept either JSON or multipart form bodies"""

import json
import re
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

_BRACKETS = re.compile(r"\[([^\]]*)\]")


def _split_key(key: str) -> list[str]:
    # "price[sale]" and "price.sale" both become ["price", "sale"]
    return [part for part in _BRACKETS.sub(r".\1", key).split(".") if part]


def unflatten_form(items: list[tuple[str, Any]]) -> dict:
    """Turn dotted or bracketed field names into nested dictionaries"""
    result: dict = {}
    for key, value in items:
        if isinstance(value, str) and value.strip() == "":
            continue
        parts = _split_key(key)
        if not parts:
            continue
        target = result
        for part in parts[:-1]:
            existing = target.get(part)
            if not isinstance(existing, dict):
                existing = {}
                target[part] = existing
            target = existing
        leaf = parts[-1]
        if leaf in target:
            current = target[leaf]
            target[leaf] = current + [value] if isinstance(current, list) else [current, value]
        else:
            target[leaf] = value
    return result


async def read_payload(request: Request) -> tuple[dict, dict[str, list[UploadFile]]]:
    """
    Read a request body as (fields, files).

    Multipart and urlencoded bodies are unflattened; a JSON-encoded "data"
    field is merged in when present. JSON bodies carry no files.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields = []
        files: dict[str, list[UploadFile]] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if value.filename:
                    files.setdefault(key, []).append(value)
            else:
                fields.append((key, value))
        data = unflatten_form(fields)
        raw = data.pop("data", None)
        if isinstance(raw, str):
            try:
                data = {**json.loads(raw), **data}
            except ValueError:
                raise HTTPException(status_code=400, detail="Field 'data' must be valid JSON")
        return data, files

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body, {}


def validate_model(model: type[BaseModel], data: dict) -> BaseModel:
    """Validate a payload, reporting failures like FastAPI's own body validation"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
