import secrets
import time

BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def random_suffix(length: int = 4) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_project_id() -> str:
    """PRJ-<epoch ms>-<4 base36 chars>"""
    return f"PRJ-{epoch_ms()}-{random_suffix()}"


def generate_dpp_id(project_id: str) -> str:
    """DPP-<project id>-<epoch ms>-<4 base36 chars>"""
    return f"DPP-{project_id}-{epoch_ms()}-{random_suffix()}"
