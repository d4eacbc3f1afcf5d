"""Catalog browsing and per-medication schedule overrides."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from med_reminders.api.deps import ContainerDep
from med_reminders.core.slots import SLOT_TIMES, Frequency
from med_reminders.schemas.medication import (
    Medication,
    MedicationDetail,
    MedicationSummary,
    ScheduleOverrideUpdate,
)
from med_reminders.services.container import ServiceContainer
from med_reminders.services.notification_service import format_time

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_or_404(container: ServiceContainer, medication_id: str) -> Medication:
    medication = container.catalog.get(medication_id)
    if medication is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medication not found")
    return medication


async def _detail(container: ServiceContainer, medication: Medication) -> MedicationDetail:
    override = await container.resolver.get_override(medication.id)
    return MedicationDetail(
        medication=medication,
        custom_schedule=override,
        effective_schedule=await container.resolver.effective_schedule(medication),
        available_frequencies=list(Frequency),
        time_slots={slot: format_time(value) for slot, value in SLOT_TIMES.items()},
    )


@router.get("", response_model=list[MedicationSummary], summary="List medications")
async def list_medications(container: ContainerDep) -> list[MedicationSummary]:
    summaries: list[MedicationSummary] = []
    for medication in container.catalog.medications:
        effective = await container.resolver.effective_schedule(medication)
        summaries.append(
            MedicationSummary(
                id=medication.id,
                name=medication.name,
                dose=medication.dose,
                location=medication.location,
                frequency=effective.frequency,
                active=effective.active,
                notes=effective.notes,
                has_custom_schedule=effective.overridden,
            )
        )
    return summaries


@router.get("/{medication_id}", response_model=MedicationDetail, summary="Medication detail")
async def get_medication(medication_id: str, container: ContainerDep) -> MedicationDetail:
    return await _detail(container, _get_or_404(container, medication_id))


@router.put(
    "/{medication_id}/schedule",
    response_model=MedicationDetail,
    summary="Create or update a schedule override",
)
async def update_schedule(
    medication_id: str,
    payload: ScheduleOverrideUpdate,
    container: ContainerDep,
) -> MedicationDetail:
    medication = _get_or_404(container, medication_id)
    if payload.frequency == Frequency.TAPERING and medication.tapering is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Medication has no tapering table",
        )
    await container.store.save_override(medication_id, payload)
    container.resolver.invalidate(medication_id)
    logger.info("Schedule override saved for %s", medication_id)
    return await _detail(container, medication)


@router.delete("/{medication_id}/schedule", summary="Remove a schedule override")
async def delete_schedule(medication_id: str, container: ContainerDep) -> dict[str, bool]:
    _get_or_404(container, medication_id)
    deleted = await container.store.delete_override(medication_id)
    container.resolver.invalidate(medication_id)
    if deleted:
        logger.info("Schedule override removed for %s", medication_id)
    return {"deleted": deleted}
