# faceaccess/main.py
"""
Face Access - Main Entry Point.

Wires settings, detector, executor and store into a VerificationService and
exposes it on the command line:

Usage:
    python -m faceaccess.main verify photo.jpg
    python -m faceaccess.main enroll "Alice" alice.jpg
    python -m faceaccess.main list
    python -m faceaccess.main delete "Alice"
    python -m faceaccess.main serve --port 5000
    python -m faceaccess.main --spoof-threshold 0.1 --mode accurate verify photo.jpg

Exit code: 0 when access is granted / the command succeeded, 1 otherwise.
"""
import sys
import json
import logging
import argparse

from .core.errors import FaceAccessError
from .core.settings import settings
from .core.types import PreprocessingMode

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def setup_logging(cfg=None):
    """Root logging: console, plus faceaccess.log on Raspberry Pi."""
    cfg = cfg or settings
    handlers = [logging.StreamHandler()]
    if cfg.IS_PI:
        handlers.insert(0, logging.FileHandler('faceaccess.log', encoding='utf-8'))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='faceaccess',
        description='Face Access - on-device face verification with liveness check',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m faceaccess.main verify photo.jpg
  python -m faceaccess.main enroll "Alice" alice.jpg
  python -m faceaccess.main --threshold 1.5 verify photo.jpg
        """
    )

    # Decision thresholds
    parser.add_argument(
        '--spoof-threshold',
        type=float,
        metavar='VALUE',
        help=f'Spoof probability threshold, clamped to [0.001, 0.5] '
             f'(default: {settings.SPOOF_THRESHOLD})'
    )
    parser.add_argument(
        '--threshold', '-t',
        type=float,
        metavar='VALUE',
        help=f'Verification distance threshold (default: {settings.VERIFICATION_THRESHOLD})'
    )

    # Pipeline
    parser.add_argument(
        '--mode',
        choices=[m.value for m in PreprocessingMode],
        help=f'Preprocessing mode (default: {settings.PREPROCESSING_MODE})'
    )
    parser.add_argument(
        '--db',
        metavar='PATH',
        help=f'Embeddings JSON file (default: {settings.EMBEDDINGS_PATH})'
    )

    # Web server
    parser.add_argument(
        '--port', '-p',
        type=int,
        metavar='PORT',
        help=f'Web server port (default: {settings.WEB_PORT})'
    )

    # Debug
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose logging'
    )

    sub = parser.add_subparsers(dest='command', metavar='COMMAND')
    sub.required = True

    p_verify = sub.add_parser('verify', help='Verify the face in an image')
    p_verify.add_argument('image', help='Image file (JPEG/PNG)')

    p_enroll = sub.add_parser('enroll', help='Enroll a face under a name')
    p_enroll.add_argument('name', help='Display name')
    p_enroll.add_argument('image', help='Image file (JPEG/PNG)')

    sub.add_parser('list', help='List enrolled identities')

    p_delete = sub.add_parser('delete', help='Delete an enrolled identity')
    p_delete.add_argument('name', help='Display name')

    sub.add_parser('serve', help='Run the web management API')

    return parser.parse_args(argv)


def apply_arguments(args, cfg=None):
    """Apply command line arguments to settings."""
    cfg = cfg or settings
    changes = []

    if args.spoof_threshold is not None:
        value = cfg.set_spoof_threshold(args.spoof_threshold)
        changes.append(f"Spoof threshold: {value}")
    if args.threshold is not None:
        cfg.VERIFICATION_THRESHOLD = args.threshold
        changes.append(f"Threshold: {args.threshold}")
    if args.mode:
        cfg.PREPROCESSING_MODE = args.mode
        changes.append(f"Mode: {args.mode}")
    if args.db:
        cfg.EMBEDDINGS_PATH = args.db
        changes.append(f"Embeddings: {args.db}")
    if args.port:
        cfg.WEB_PORT = args.port
        changes.append(f"Port: {args.port}")

    # Verbose logging
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        changes.append("Verbose: ON")

    return changes


# === COMMANDS ===

def cmd_verify(service, args) -> int:
    from .processing.image_io import load_image

    image = load_image(args.image)
    outcome = service.verify(image)
    print(json.dumps(outcome.to_dict(), indent=2))
    return EXIT_OK if outcome.granted else EXIT_FAILURE


def cmd_enroll(service, args) -> int:
    from .processing.image_io import load_image

    image = load_image(args.image)
    identity = service.enroll(args.name, image)
    print(f"Enrolled {identity.name} ({identity.embedding_count} embeddings)")
    return EXIT_OK


def cmd_list(service, args) -> int:
    identities = service.list_identities()
    for identity in identities:
        print(f"{identity.name}\t{identity.embedding_count}")
    print(f"{len(identities)} identities")
    return EXIT_OK


def cmd_delete(service, args) -> int:
    if service.delete_identity(args.name):
        print(f"Deleted {args.name}")
        return EXIT_OK
    print(f"Not found: {args.name}")
    return EXIT_FAILURE


def cmd_serve(service, args, cfg=None) -> int:
    from .web.server import run_server, setup_management

    cfg = cfg or settings
    if not cfg.ENABLE_WEB_SERVER:
        logger.error("Web server is disabled (ENABLE_WEB_SERVER = false)")
        return EXIT_FAILURE
    setup_management(service)
    run_server(host=cfg.WEB_HOST, port=cfg.WEB_PORT)
    return EXIT_OK


COMMANDS = {
    'verify': cmd_verify,
    'enroll': cmd_enroll,
    'list': cmd_list,
    'delete': cmd_delete,
    'serve': cmd_serve,
}


def main(argv=None, service=None) -> int:
    """
    Run one CLI command.

    Args:
        argv: Arguments (None = sys.argv[1:])
        service: Prebuilt VerificationService (None = build from settings).
            The caller keeps ownership; --db replaces its store.

    Returns:
        Process exit code
    """
    setup_logging()
    args = parse_arguments(argv)

    for change in apply_arguments(args):
        logger.info(f"CONFIG: {change}")

    owned = service is None
    try:
        if owned:
            from .core.model_factory import create_verification_service
            service = create_verification_service()
        else:
            if args.db:
                from .core.model_factory import create_store
                service.store = create_store(args.db)
            if args.spoof_threshold is not None:
                service.spoof_threshold = args.spoof_threshold
            if args.threshold is not None:
                service.verification_threshold = args.threshold
            if args.mode:
                service.preprocessing_mode = args.mode

        return COMMANDS[args.command](service, args)
    except FaceAccessError as e:
        logger.error(f"{e.code}: {e.message}")
        return EXIT_FAILURE
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Stopped (Ctrl+C)")
        return EXIT_OK
    finally:
        if owned and service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
