"""
CLI: sincronización de listings con Airtable.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) cuando el scheduler del API
    está deshabilitado (SYNC_SCHEDULER_ENABLED=false).

Ejecución:
  python scripts/run_sync.py
  python scripts/run_sync.py --direction airtable_to_local --full-sync
  python scripts/run_sync.py --test-connection
  python scripts/run_sync.py --cleanup-media
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `listing_sync/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (api/.env o raíz del repo).
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from listing_sync.core.events import build_orchestrator, configure_logging
from listing_sync.infrastructure.database.session import init_db
from listing_sync.shared.constants.sync_constants import RunStatus, SyncDirection
from listing_sync.shared.exceptions.base import AppException


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincroniza listings con Airtable")
    parser.add_argument(
        "--direction",
        choices=[d.value for d in SyncDirection],
        default=None,
        help="Dirección a sincronizar (por defecto la configurada).",
    )
    parser.add_argument(
        "--full-sync",
        action="store_true",
        help="Resetea el checkpoint y sincroniza todos los registros.",
    )
    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Solo prueba la conexión con Airtable (maxRecords=1).",
    )
    parser.add_argument(
        "--cleanup-media",
        action="store_true",
        help="Borra media huérfana y recorta el historial.",
    )
    args = parser.parse_args()

    init_db()
    configure_logging()
    orchestrator = build_orchestrator()

    if args.test_connection:
        result = orchestrator.test_connection()
        logger.info(f"Test de conexión: {result.message} (intentos={result.attempts})")
        return 0 if result.success else 1

    if args.cleanup_media:
        summary = orchestrator.cleanup()
        print(json.dumps(summary, indent=2))
        return 0

    direction = SyncDirection(args.direction) if args.direction else None
    try:
        result = orchestrator.run(direction, full_sync=args.full_sync)
    except AppException as e:
        logger.error(f"Sync rechazado: {e.message}")
        return 2

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.status in (RunStatus.SUCCESS, RunStatus.PARTIAL) else 1


if __name__ == "__main__":
    raise SystemExit(main())
