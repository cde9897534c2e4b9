"""
GST Calculation Engine - turn a resolved configuration into a tax breakdown.

Pure functions with no I/O.  The configuration is provided by the caller
(gst_services.calculation_service resolves it from the store).

Usage:
    from decimal import Decimal
    from gst_engines.calculation import GstCalculator, TaxCalculationRequest

    request = TaxCalculationRequest(
        classification_code="8471",
        unit_amount=Decimal("1000"),
        quantity=1,
        source_state="KA",
        destination_state="MH",
        business_type="B2B",
    )
    result = GstCalculator().calculate(request, configuration)
    print(result.igst_amount)   # 180.00
    print(result.total_amount)  # 1180.00

Arithmetic (every monetary step rounds half-up to paisa):
    base        = unit_amount * quantity
    total_gst   = round(base * total_gst_rate / 100)
    cess        = round(base * cess_rate / 100)         if cess_rate > 0
                  round(cess_amount_per_unit * qty)     elif per-unit > 0
    intra-state : cgst = round(total_gst / 2), sgst = total_gst - cgst
    inter-state : igst = total_gst
    total_tax   = cgst + sgst + utgst + igst + cess
    total       = round(base + total_tax)

A configuration projected from component rates may carry per-component
minimum/maximum amounts.  Each charged component is clamped to them
before total_tax is summed.

The percentage cess basis takes precedence when a configuration carries
both a cess rate and a per-unit cess amount.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Sequence
from uuid import UUID

from gst_kernel.domain.dtos import TaxConfigurationInfo
from gst_kernel.domain.enums import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
    TransactionType,
    normalize_state,
)
from gst_kernel.domain.values import HUNDRED, ZERO, display_decimal, is_positive, to_decimal
from gst_kernel.exceptions import InvalidCalculationInputError
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.calculation")


def _exact(field_name: str, value) -> Decimal:
    try:
        number = to_decimal(value)
    except (TypeError, InvalidOperation):
        raise InvalidCalculationInputError(
            field_name, value, "must be an exact decimal (int, str or Decimal)"
        ) from None
    if not number.is_finite():
        raise InvalidCalculationInputError(field_name, value, "must be a finite number")
    return number


@dataclass(frozen=True)
class TaxCalculationRequest:
    """
    One line to tax.

    transaction_type is optional and carried through to the result; the
    intra/inter-state decision is always taken from the two states.
    business_type None means "the caller's default" (filled in by the
    calculation service before resolution).
    """

    classification_code: str
    unit_amount: Decimal
    quantity: Decimal = Decimal("1")
    source_state: str | None = None
    destination_state: str | None = None
    business_type: BusinessType | None = None
    transaction_type: TransactionType | None = None

    def __post_init__(self) -> None:
        if self.unit_amount is None:
            raise InvalidCalculationInputError("unit_amount", None, "is required")
        object.__setattr__(self, "unit_amount", _exact("unit_amount", self.unit_amount))
        quantity = Decimal("1") if self.quantity is None else self.quantity
        object.__setattr__(self, "quantity", _exact("quantity", quantity))
        if self.business_type is not None:
            object.__setattr__(self, "business_type", BusinessType.parse(self.business_type))
        if self.transaction_type is not None:
            object.__setattr__(
                self, "transaction_type", TransactionType.parse(self.transaction_type)
            )

    @property
    def base_amount(self) -> Decimal:
        return self.unit_amount * self.quantity


@dataclass(frozen=True)
class TaxBreakdownItem:
    """One rendered invoice line of tax."""

    component_type: TaxComponentType
    taxable_amount: Decimal
    amount: Decimal
    rate: Decimal | None = None
    amount_per_unit: Decimal | None = None
    quantity: Decimal | None = None

    @property
    def description(self) -> str:
        name = self.component_type.display_name
        if self.rate is not None:
            return f"{name} @ {display_decimal(self.rate)}%"
        return f"{name} @ {display_decimal(self.amount_per_unit)} per unit"


@dataclass(frozen=True)
class TaxCalculationResult:
    """
    Complete, immutable result of one calculation.

    Never persisted by the engine.
    """

    classification_code: str
    business_type: BusinessType
    unit_amount: Decimal
    quantity: Decimal
    base_amount: Decimal
    total_gst_rate: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    utgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    total_tax_amount: Decimal
    total_amount: Decimal
    is_intra_state: bool
    transaction_type: TransactionType
    breakdown: tuple[TaxBreakdownItem, ...] = ()
    source_state: str | None = None
    destination_state: str | None = None
    reverse_charge_applicable: bool = False
    composition_scheme_applicable: bool = False
    configuration_id: UUID | None = None
    as_of: date | None = None
    calculation_notes: tuple[str, ...] = ()
    rate_places: int = 4

    @property
    def total_gst_amount(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount + self.utgst_amount + self.igst_amount

    @property
    def effective_rate(self) -> Decimal:
        """GST as a percentage of base."""
        return self._percent_of_base(self.total_gst_amount)

    @property
    def effective_cess_rate(self) -> Decimal:
        """Cess as a percentage of base."""
        return self._percent_of_base(self.cess_amount)

    def amount_for(self, component: TaxComponentType) -> Decimal:
        return sum(
            (i.amount for i in self.breakdown if i.component_type == component), ZERO
        )

    def _percent_of_base(self, amount: Decimal) -> Decimal:
        if self.base_amount == ZERO:
            return ZERO
        quantum = Decimal(10) ** -self.rate_places
        return (amount * HUNDRED / self.base_amount).quantize(quantum, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class BulkTaxCalculationResult:
    """All lines of a batch plus every monetary field summed."""

    results: tuple[TaxCalculationResult, ...]
    total_base_amount: Decimal = ZERO
    total_cgst_amount: Decimal = ZERO
    total_sgst_amount: Decimal = ZERO
    total_utgst_amount: Decimal = ZERO
    total_igst_amount: Decimal = ZERO
    total_cess_amount: Decimal = ZERO
    total_tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    @property
    def line_count(self) -> int:
        return len(self.results)

    @property
    def total_gst_amount(self) -> Decimal:
        return (
            self.total_cgst_amount
            + self.total_sgst_amount
            + self.total_utgst_amount
            + self.total_igst_amount
        )

    @classmethod
    def from_results(cls, results: Sequence[TaxCalculationResult]) -> BulkTaxCalculationResult:
        def total(attr: str) -> Decimal:
            return sum((getattr(r, attr) for r in results), ZERO)

        return cls(
            results=tuple(results),
            total_base_amount=total("base_amount"),
            total_cgst_amount=total("cgst_amount"),
            total_sgst_amount=total("sgst_amount"),
            total_utgst_amount=total("utgst_amount"),
            total_igst_amount=total("igst_amount"),
            total_cess_amount=total("cess_amount"),
            total_tax_amount=total("total_tax_amount"),
            total_amount=total("total_amount"),
        )


# Resolves the configuration for one line; receives the request and its index
ConfigurationResolver = Callable[[TaxCalculationRequest, int], TaxConfigurationInfo]


class GstCalculator:
    """
    Calculate GST for a request against a resolved configuration.

    Pure - no I/O, no database access, no clock.

    Options:
        split_union_territory: intra-state supply whose destination is a
            union territory without a legislature reports the state half
            as UTGST instead of SGST.
        treat_missing_state_as_inter_state: a request missing either state
            is taxed as inter-state (IGST).  When False, two missing states
            compare equal (intra-state).
    """

    def __init__(
        self,
        *,
        monetary_places: int = 2,
        rate_places: int = 4,
        split_union_territory: bool = False,
        treat_missing_state_as_inter_state: bool = True,
    ):
        self._money_quantum = Decimal(10) ** -monetary_places
        self._rate_quantum = Decimal(10) ** -rate_places
        self._rate_places = rate_places
        self.split_union_territory = split_union_territory
        self.treat_missing_state_as_inter_state = treat_missing_state_as_inter_state

    def _round(self, amount: Decimal) -> Decimal:
        return amount.quantize(self._money_quantum, rounding=ROUND_HALF_UP)

    def validate_request(
        self, request: TaxCalculationRequest, line_index: int | None = None
    ) -> None:
        """
        Raises:
            InvalidCalculationInputError: Non-positive amount or quantity.
        """
        if request.unit_amount <= ZERO:
            raise InvalidCalculationInputError(
                "unit_amount", request.unit_amount, "must be positive", line_index
            )
        if request.quantity <= ZERO:
            raise InvalidCalculationInputError(
                "quantity", request.quantity, "must be positive", line_index
            )

    def is_intra_state(self, source_state: str | None, destination_state: str | None) -> bool:
        source = normalize_state(source_state)
        destination = normalize_state(destination_state)
        if source is None or destination is None:
            if self.treat_missing_state_as_inter_state:
                return False
            return source == destination
        return source == destination

    def calculate(
        self,
        request: TaxCalculationRequest,
        configuration: TaxConfigurationInfo,
        *,
        as_of: date | None = None,
        notes: Sequence[str] = (),
        line_index: int | None = None,
    ) -> TaxCalculationResult:
        """
        Calculate tax for one request.

        Args:
            request: The line to tax.
            configuration: The resolved configuration.
            as_of: Date the configuration was resolved for (reported only).
            notes: Extra notes from the caller, appended to the result.
            line_index: Position in a batch, for error reporting.

        Raises:
            InvalidCalculationInputError: Non-positive amount or quantity.
        """
        t0 = time.monotonic()
        self.validate_request(request, line_index)

        logger.debug(
            "tax_calculation_started",
            extra={
                "hsn_code": request.classification_code,
                "unit_amount": request.unit_amount,
                "quantity": request.quantity,
                "business_type": configuration.business_type.value,
                "configuration_id": str(configuration.id),
            },
        )

        base = self._round(request.base_amount)
        intra = self.is_intra_state(request.source_state, request.destination_state)
        total_gst = self._round(base * configuration.total_gst_rate / HUNDRED)

        cgst = sgst = utgst = igst = ZERO
        use_utgst = (
            intra
            and self.split_union_territory
            and GeographicalZone.is_union_territory(request.destination_state)
        )
        if intra:
            cgst = self._round(total_gst / 2)
            state_half = total_gst - cgst
            if use_utgst:
                utgst = state_half
            else:
                sgst = state_half
        else:
            igst = total_gst

        bound_notes: list[str] = []
        cgst = self._bounded(configuration, TaxComponentType.CGST, cgst, bound_notes)
        sgst = self._bounded(configuration, TaxComponentType.SGST, sgst, bound_notes)
        utgst = self._bounded(configuration, TaxComponentType.UTGST, utgst, bound_notes)
        igst = self._bounded(configuration, TaxComponentType.IGST, igst, bound_notes)

        cess, cess_item = self._cess(base, request.quantity, configuration)
        if cess_item is not None:
            cess = self._bounded(configuration, TaxComponentType.CESS, cess, bound_notes)
            cess_item = replace(cess_item, amount=cess)

        total_tax = cgst + sgst + utgst + igst + cess
        total = self._round(base + total_tax)

        breakdown = self._breakdown(
            base, configuration, cgst, sgst, utgst, igst, cess_item
        )
        transaction_type = request.transaction_type or self._derive_transaction_type(
            intra, use_utgst
        )

        result = TaxCalculationResult(
            classification_code=request.classification_code,
            business_type=request.business_type or configuration.business_type,
            unit_amount=request.unit_amount,
            quantity=request.quantity,
            base_amount=base,
            total_gst_rate=configuration.total_gst_rate,
            cgst_amount=cgst,
            sgst_amount=sgst,
            utgst_amount=utgst,
            igst_amount=igst,
            cess_amount=cess,
            total_tax_amount=total_tax,
            total_amount=total,
            is_intra_state=intra,
            transaction_type=transaction_type,
            breakdown=breakdown,
            source_state=normalize_state(request.source_state),
            destination_state=normalize_state(request.destination_state),
            reverse_charge_applicable=configuration.reverse_charge_applicable,
            composition_scheme_applicable=configuration.composition_scheme_applicable,
            configuration_id=configuration.id,
            as_of=as_of,
            calculation_notes=self._notes(configuration, intra, use_utgst, transaction_type)
            + tuple(bound_notes)
            + tuple(notes),
            rate_places=self._rate_places,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "tax_calculation_completed",
            extra={
                "hsn_code": request.classification_code,
                "base_amount": base,
                "total_tax_amount": total_tax,
                "total_amount": total,
                "is_intra_state": intra,
                "breakdown_count": len(breakdown),
                "configuration_id": str(configuration.id),
                "duration_ms": duration_ms,
            },
        )
        return result

    def calculate_bulk(
        self,
        requests: Sequence[TaxCalculationRequest],
        resolve: ConfigurationResolver,
        *,
        as_of: date | None = None,
    ) -> BulkTaxCalculationResult:
        """
        Calculate every line independently and sum the monetary fields.

        All-or-nothing: every line is validated before any is resolved, and
        the first failing line aborts the batch.

        Args:
            requests: Lines to tax.
            resolve: Returns the configuration for (request, line_index) or
                raises.  Called once per line; nothing is shared across lines.
        """
        t0 = time.monotonic()
        for index, request in enumerate(requests):
            self.validate_request(request, index)

        results = [
            self.calculate(request, resolve(request, index), as_of=as_of, line_index=index)
            for index, request in enumerate(requests)
        ]
        bulk = BulkTaxCalculationResult.from_results(results)

        logger.info(
            "bulk_tax_calculation_completed",
            extra={
                "line_count": bulk.line_count,
                "total_base_amount": bulk.total_base_amount,
                "total_tax_amount": bulk.total_tax_amount,
                "total_amount": bulk.total_amount,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return bulk

    def _cess(
        self,
        base: Decimal,
        quantity: Decimal,
        configuration: TaxConfigurationInfo,
    ) -> tuple[Decimal, TaxBreakdownItem | None]:
        # Percentage basis wins when both are configured
        if is_positive(configuration.cess_rate):
            amount = self._round(base * configuration.cess_rate / HUNDRED)
            return amount, TaxBreakdownItem(
                component_type=TaxComponentType.CESS,
                taxable_amount=base,
                amount=amount,
                rate=configuration.cess_rate,
            )
        if is_positive(configuration.cess_amount_per_unit):
            amount = self._round(configuration.cess_amount_per_unit * quantity)
            return amount, TaxBreakdownItem(
                component_type=TaxComponentType.CESS,
                taxable_amount=base,
                amount=amount,
                amount_per_unit=configuration.cess_amount_per_unit,
                quantity=quantity,
            )
        return ZERO, None

    def _bounded(
        self,
        configuration: TaxConfigurationInfo,
        component: TaxComponentType,
        amount: Decimal,
        notes: list[str],
    ) -> Decimal:
        """Clamp a charged component to its minimum/maximum; uncharged ones stay zero."""
        bounds = configuration.bounds_for(component)
        if not bounds or amount == ZERO:
            return amount
        clamped = self._round(bounds.clamp(amount))
        if clamped > amount:
            notes.append(f"{component.value} raised to minimum amount {clamped}")
        elif clamped < amount:
            notes.append(f"{component.value} capped at maximum amount {clamped}")
        return clamped

    def _breakdown(
        self,
        base: Decimal,
        configuration: TaxConfigurationInfo,
        cgst: Decimal,
        sgst: Decimal,
        utgst: Decimal,
        igst: Decimal,
        cess_item: TaxBreakdownItem | None,
    ) -> tuple[TaxBreakdownItem, ...]:
        total_rate = configuration.total_gst_rate
        half_rate = (total_rate / 2).quantize(self._rate_quantum, rounding=ROUND_HALF_UP)
        state_rate = configuration.sgst_rate or configuration.utgst_rate

        lines = (
            (TaxComponentType.CGST, cgst, configuration.cgst_rate or half_rate),
            (TaxComponentType.SGST, sgst, state_rate or half_rate),
            (TaxComponentType.UTGST, utgst, state_rate or half_rate),
            (TaxComponentType.IGST, igst, configuration.igst_rate or total_rate),
        )
        items = [
            TaxBreakdownItem(
                component_type=component,
                taxable_amount=base,
                amount=amount,
                rate=rate,
            )
            for component, amount, rate in lines
            if amount != ZERO
        ]
        if cess_item is not None and cess_item.amount != ZERO:
            items.append(cess_item)
        return tuple(items)

    @staticmethod
    def _derive_transaction_type(intra: bool, use_utgst: bool) -> TransactionType:
        if use_utgst:
            return TransactionType.UNION_TERRITORY
        return TransactionType.INTRA_STATE if intra else TransactionType.INTER_STATE

    @staticmethod
    def _notes(
        configuration: TaxConfigurationInfo,
        intra: bool,
        use_utgst: bool,
        transaction_type: TransactionType,
    ) -> tuple[str, ...]:
        notes = []
        if use_utgst:
            notes.append("Intra-state supply in a union territory: CGST + UTGST")
        elif intra:
            notes.append("Intra-state supply: CGST + SGST")
        else:
            notes.append("Inter-state supply: IGST")
        if transaction_type in (TransactionType.EXPORT, TransactionType.IMPORT):
            notes.append(f"Transaction type {transaction_type.value} recorded as supplied")
        if configuration.reverse_charge_applicable:
            notes.append("Reverse charge applicable: tax payable by the recipient")
        if configuration.composition_scheme_applicable:
            if configuration.composition_rate is not None:
                rate = display_decimal(configuration.composition_rate)
                notes.append(f"Composition scheme available at {rate}%")
            else:
                notes.append("Composition scheme available")
        if configuration.notification_reference:
            notes.append(f"Notification {configuration.notification_reference}")
        if configuration.description:
            notes.append(configuration.description)
        return tuple(notes)
