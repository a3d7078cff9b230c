# CLI 실행용
from xploitra.scanner.cli.runner import cli

if __name__ == "__main__":
    cli()
