# scripts/analyze_photo.py
import argparse
import asyncio
import sys

from app.client.http import DEFAULT_BASE_URL, AnalyzeClient
from app.client.image_file import ImageFileError, load_image_file
from app.client.session import ANALYZING_TEXT, CaptureSession, SessionState, render


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check whether a photo contains a question.")
    parser.add_argument("image", help="path to an image file")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="analysis server URL")
    args = parser.parse_args(argv)

    session = CaptureSession(AnalyzeClient(args.base_url))
    try:
        data_url = load_image_file(args.image)
    except ImageFileError as e:
        session.fail(str(e))
    else:
        print(ANALYZING_TEXT)
        await session.submit(data_url)

    print(render(session))
    return 0 if session.state is SessionState.RESULT else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
