"""Built-in UBL profiles ("contexts") and their lookup rules."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field

from ublconv.constants import META_UBL_PROFILE
from ublconv.errors import ConfigurationError
from ublconv.parsing.codes import InvoiceType

log = logging.getLogger(__name__)

PEPPOL_BILLING_PROFILE_ID = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"

ADDON_EN16931 = "eu-en16931-v2017"
ADDON_XRECHNUNG = "de-xrechnung-v3"
ADDON_FACTURX = "fr-facturx-v1"


@dataclass(frozen=True)
class VESIDs:
    """Validation specification ids for invoices and credit notes."""

    invoice: str = ""
    credit_note: str = ""


@dataclass(frozen=True)
class Context:
    """A UBL profile.

    Two contexts are equal when their ``customization_id`` and
    ``profile_id`` match; every other field is descriptive.  The capability
    flags drive the profile-specific branches of the mappers:

    ``oioubl``          UBLVersionID/UUID, line tax totals, means code 31
    ``single_note``     all free-text notes joined into one ``cbc:Note``
    ``legacy_overlay``  OIOUBL 2.1 rule overlay after mapping
    """

    customization_id: str
    profile_id: str = ""
    output_customization_id: str = field(default="", compare=False)
    addons: tuple[str, ...] = field(default=(), compare=False)
    vesids: VESIDs = field(default_factory=VESIDs, compare=False)
    oioubl: bool = field(default=False, compare=False)
    single_note: bool = field(default=False, compare=False)
    legacy_overlay: bool = field(default=False, compare=False)
    name: str = field(default="", compare=False)


EN16931 = Context(
    name="en16931",
    customization_id="urn:cen.eu:en16931:2017",
    addons=(ADDON_EN16931,),
    vesids=VESIDs(
        invoice="eu.cen.en16931:ubl:1.3.14-2",
        credit_note="eu.cen.en16931:ubl-creditnote:1.3.15",
    ),
)

PEPPOL = Context(
    name="peppol",
    customization_id=(
        "urn:cen.eu:en16931:2017#compliant"
        "#urn:fdc:peppol.eu:2017:poacc:billing:3.0"
    ),
    profile_id=PEPPOL_BILLING_PROFILE_ID,
    addons=(ADDON_EN16931,),
    vesids=VESIDs(
        invoice="eu.peppol.bis3:invoice:2025.5",
        credit_note="eu.peppol.bis3:creditnote:2025.5",
    ),
    single_note=True,
)

PEPPOL_SELF_BILLED = Context(
    name="peppol-self-billed",
    customization_id=(
        "urn:cen.eu:en16931:2017#compliant"
        "#urn:fdc:peppol.eu:2017:poacc:selfbilling:3.0"
    ),
    profile_id="urn:fdc:peppol.eu:2017:poacc:selfbilling:01:1.0",
    addons=(ADDON_EN16931,),
    vesids=VESIDs(
        invoice="eu.peppol.bis3:invoice-self-billing:2025.3",
        credit_note="eu.peppol.bis3:creditnote-self-billing:2025.3",
    ),
)

XRECHNUNG = Context(
    name="xrechnung",
    customization_id=(
        "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0"
    ),
    profile_id=PEPPOL_BILLING_PROFILE_ID,
    addons=(ADDON_XRECHNUNG,),
    vesids=VESIDs(
        invoice="de.xrechnung:ubl-invoice:3.0.2",
        credit_note="de.xrechnung:ubl-creditnote:3.0.2",
    ),
)

PEPPOL_FRANCE_CIUS = Context(
    name="peppol-france-cius",
    customization_id=(
        "urn:cen.eu:en16931:2017#compliant#urn:peppol:france:billing:cius:1.0"
    ),
    profile_id="urn:peppol:france:billing:regulated",
    output_customization_id="urn:cen.eu:en16931:2017",
    addons=(ADDON_EN16931,),
    vesids=VESIDs(
        invoice="fr.ctc:ubl-invoice:1.2",
        credit_note="fr.ctc:ubl-creditnote:1.2",
    ),
)

PEPPOL_FRANCE_EXTENDED = Context(
    name="peppol-france-extended",
    customization_id=(
        "urn:cen.eu:en16931:2017#conformant"
        "#urn:peppol:france:billing:extended:1.0"
    ),
    profile_id="urn:peppol:france:billing:regulated",
    output_customization_id=(
        "urn:cen.eu:en16931:2017#conformant#urn.cpro.gouv.fr:1p0:extended-ctc-fr"
    ),
    addons=(ADDON_FACTURX,),
    vesids=VESIDs(
        invoice="fr.ctc:ubl-invoice:1.2",
        credit_note="fr.ctc:ubl-creditnote:1.2",
    ),
)

OIOUBL = Context(
    name="nemhandel",
    customization_id="urn:fdc:oioubl.dk:trns:billing:invoice:3.0",
    profile_id="urn:fdc:oioubl.dk:bis:billing_with_response:3",
    addons=(ADDON_EN16931,),
    oioubl=True,
)

OIOUBL21 = Context(
    name="nemhandel-2.1",
    customization_id="OIOUBL-2.1",
    profile_id="urn:www.nesubl.eu:profiles:profile5:ver2.0",
    addons=(ADDON_EN16931,),
    oioubl=True,
    legacy_overlay=True,
)

# Lookup order matters: the first match wins.
CONTEXTS: tuple[Context, ...] = (
    EN16931,
    PEPPOL,
    PEPPOL_SELF_BILLED,
    XRECHNUNG,
    PEPPOL_FRANCE_CIUS,
    PEPPOL_FRANCE_EXTENDED,
    OIOUBL,
    OIOUBL21,
)

DEFAULT_CONTEXT = EN16931

ALIASES: dict[str, Context] = {
    "en16931": EN16931,
    "en": EN16931,
    "peppol": PEPPOL,
    "peppol-self-billed": PEPPOL_SELF_BILLED,
    "peppol-selfbilled": PEPPOL_SELF_BILLED,
    "peppol-self": PEPPOL_SELF_BILLED,
    "xrechnung": XRECHNUNG,
    "peppol-france-cius": PEPPOL_FRANCE_CIUS,
    "france-cius": PEPPOL_FRANCE_CIUS,
    "fr-cius": PEPPOL_FRANCE_CIUS,
    "peppol-france-extended": PEPPOL_FRANCE_EXTENDED,
    "france-extended": PEPPOL_FRANCE_EXTENDED,
    "fr-extended": PEPPOL_FRANCE_EXTENDED,
    "nemhandel": OIOUBL,
    "oioubl": OIOUBL,
    "nemhandel-2.1": OIOUBL21,
    "oioubl-2.1": OIOUBL21,
    "oioubl21": OIOUBL21,
}


def find_context(customization_id: str | None, profile_id: str | None = None) -> Context | None:
    """Detect the context of a parsed document.

    The full CustomizationID is tried first; a context with its own
    ProfileID is skipped when a different ProfileID was supplied.  The
    output CustomizationID is only consulted when nothing matched.
    """
    customization_id = customization_id or ""
    for ctx in CONTEXTS:
        if ctx.customization_id != customization_id:
            continue
        if ctx.profile_id and profile_id and ctx.profile_id != profile_id:
            continue
        return ctx

    for ctx in CONTEXTS:
        if ctx.output_customization_id and ctx.output_customization_id == customization_id:
            return ctx

    return None


def context_from_alias(name: str | None, profile_id: str | None = None) -> Context:
    """Resolve a case-insensitive alias, optionally overriding the ProfileID."""
    ctx = DEFAULT_CONTEXT
    if name:
        try:
            ctx = ALIASES[name.strip().lower()]
        except KeyError:
            raise ConfigurationError(f"unknown context {name!r}") from None
    if profile_id:
        ctx = dataclasses.replace(ctx, profile_id=profile_id)
    return ctx


def resolve_output_profile(invoice, context: Context) -> tuple[str, str]:
    """Return the (CustomizationID, ProfileID) pair written on output."""
    customization_id = context.output_customization_id or context.customization_id
    profile_id = context.profile_id
    meta = getattr(invoice, "meta", None) or {}
    if META_UBL_PROFILE in meta:
        profile_id = meta[META_UBL_PROFILE]
    return customization_id, profile_id


def get_vesid(context: Context, invoice_type) -> str:
    """VESID for ``invoice_type`` (a canonical type string or an invoice)."""
    kind = getattr(invoice_type, "type", invoice_type)
    if kind == InvoiceType.CREDIT_NOTE:
        return context.vesids.credit_note
    return context.vesids.invoice


def is_legacy_oioubl21(context: Context) -> bool:
    return context.legacy_overlay
