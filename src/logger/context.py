import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
course_code_var: ContextVar[str | None] = ContextVar("course_code", default=None)


def gen_request_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def bind_operation(operation: str, course_code: str | None = None) -> Iterator[None]:
    op_token = operation_var.set(operation)
    course_token = course_code_var.set(course_code)
    try:
        yield
    finally:
        course_code_var.reset(course_token)
        operation_var.reset(op_token)
