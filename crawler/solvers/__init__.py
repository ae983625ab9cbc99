"""
CAPTCHA recognition engines.

Engines:
    gemini: Hosted vision-language model (GeminiCaptchaSolver)
    tesseract: Offline Pillow + Tesseract pipeline (TesseractCaptchaSolver)
"""

from core.exceptions import ConfigurationError
from crawler.solvers.base import CaptchaSolver, normalize_answer, is_valid_answer


def build_solver(settings) -> CaptchaSolver:
    """
    Create the solver selected by CAPTCHA_ENGINE.

    Raises:
        ConfigurationError: Unknown engine or missing credentials
    """
    engine = settings.CAPTCHA_ENGINE.lower()

    if engine == "gemini":
        if not settings.GEMINI_API_KEY:
            raise ConfigurationError(
                "GEMINI_API_KEY is required for the gemini CAPTCHA engine",
                context={"engine": engine}
            )
        from crawler.solvers.gemini import GeminiCaptchaSolver
        return GeminiCaptchaSolver(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            api_url=settings.GEMINI_API_URL,
            timeout=settings.SOLVER_TIMEOUT_SEC
        )

    if engine == "tesseract":
        from crawler.solvers.tesseract import TesseractCaptchaSolver
        return TesseractCaptchaSolver(tesseract_cmd=settings.TESSERACT_CMD)

    raise ConfigurationError(
        f"Unknown CAPTCHA engine: {settings.CAPTCHA_ENGINE}",
        context={"engine": engine, "supported": ["gemini", "tesseract"]}
    )


__all__ = [
    "CaptchaSolver",
    "build_solver",
    "normalize_answer",
    "is_valid_answer",
]
