import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter

from config.config import Config
from contracts.institution import Institution

logger = logging.getLogger(__name__)

DEFAULT_INSTITUTIONS: List[Institution] = [
    Institution(
        id="nubank",
        name="Nubank",
        urls=["https://nubank.com.br"],
        status_api="https://status.nubank.com.br/api/v2/status.json",
        initial_baseline_ms=500,
        priority_weight=3,
    ),
    Institution(
        id="itau",
        name="Itaú",
        urls=[
            "https://statuspage.itau.com.br",
            "https://devportal.itau.com.br",
            "https://www.itau.com.br/empresas",
            "https://www.itau.com.br",
        ],
        status_api="https://statuspage.itau.com.br/api/v2/status.json",
        aggregator_id="itau",
        initial_baseline_ms=600,
        priority_weight=3,
    ),
    Institution(
        id="banco-do-brasil",
        name="Banco do Brasil",
        urls=[
            "https://www.bb.com.br/pbb",
            "https://www.bb.com.br/site/pra-voce",
            "https://www.bb.com.br",
        ],
        aggregator_id="banco-do-brasil",
        initial_baseline_ms=800,
        priority_weight=3,
    ),
    Institution(
        id="bradesco",
        name="Bradesco",
        urls=[
            "https://banco.bradesco",
            "https://banco.bradesco/html/classic/index.shtm",
        ],
        initial_baseline_ms=600,
        priority_weight=3,
    ),
    Institution(
        id="santander",
        name="Santander",
        urls=["https://www.santander.com.br"],
        initial_baseline_ms=600,
        priority_weight=2,
    ),
    Institution(
        id="banco-inter",
        name="Inter",
        urls=["https://www.bancointer.com.br"],
        status_api="https://status.bancointer.com.br/api/v2/status.json",
        initial_baseline_ms=450,
        priority_weight=2,
    ),
    Institution(
        id="mercado-pago",
        name="Mercado Pago",
        urls=["https://www.mercadopago.com.br"],
        initial_baseline_ms=400,
        priority_weight=2,
    ),
    Institution(
        id="picpay",
        name="PicPay",
        urls=["https://www.picpay.com"],
        initial_baseline_ms=500,
        priority_weight=2,
    ),
    Institution(
        id="c6-bank",
        name="C6 Bank",
        urls=["https://www.c6bank.com.br"],
        status_api="https://status.c6bank.com.br/api/v2/status.json",
        initial_baseline_ms=450,
        priority_weight=1,
    ),
    Institution(
        id="btg-pactual",
        name="BTG Pactual",
        urls=[
            "https://www.btgpactual.com/contact",
            "https://www.btgpactual.com/about-us",
            "https://www.btgpactual.com",
        ],
        aggregator_id="btg-pactual",
        initial_baseline_ms=500,
        priority_weight=1,
    ),
    Institution(
        id="safra",
        name="Safra",
        urls=["https://www.safra.com.br"],
        initial_baseline_ms=700,
        priority_weight=1,
    ),
]

_roster_adapter = TypeAdapter(List[Institution])


def load_institutions(path: Optional[str] = None) -> List[Institution]:
    """
    Load the monitored roster from a JSON file, or fall back to the built-in list.

    Args:
        path (Optional[str]): JSON file holding a list of institutions.
            If None, uses Config.INSTITUTIONS_FILE.

    Returns:
        List[Institution]: The roster, in monitoring order.

    Raises:
        ValueError: If two institutions share the same id.
    """
    path = path or Config.INSTITUTIONS_FILE
    if not path:
        return list(DEFAULT_INSTITUTIONS)

    with open(path, encoding="utf-8") as fh:
        institutions = _roster_adapter.validate_python(json.load(fh))

    ids = [i.id for i in institutions]
    duplicates = {i for i in ids if ids.count(i) > 1}
    if duplicates:
        raise ValueError(f"Duplicate institution ids in {path}: {sorted(duplicates)}")
    logger.info(f"Loaded {len(institutions)} institutions from {path}")
    return institutions
