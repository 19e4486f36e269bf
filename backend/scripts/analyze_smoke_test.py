from dotenv import load_dotenv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

load_dotenv(".env")

import asyncio
import json

from app.services.analysis.client import AnalysisService, build_analysis_provider


async def main() -> None:
    query = " ".join(sys.argv[1:]) or "My card was charged twice for the same order"
    provider = build_analysis_provider()
    if provider is None:
        print("Set ANALYZE_API_URL or LLM_API_KEY + LLM_MODEL in .env")
        return
    service = AnalysisService(provider)
    try:
        result = await service.analyze(query, language="en")
    finally:
        await service.aclose()
    print(json.dumps(result.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False))


asyncio.run(main())
