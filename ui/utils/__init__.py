"""UI utilities (validators, id generation, plan cache)."""

from .id_generator import generate_exam_id, generate_staff_id

__all__ = ["generate_exam_id", "generate_staff_id"]
