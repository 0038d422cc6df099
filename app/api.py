"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from app.schemas import DatalogUploadResponse, ExposureReport, SensorExposure
from services.processor import DatalogProcessor, build_default_processor

router = APIRouter()


def get_processor() -> DatalogProcessor:
    return build_default_processor()


@router.post(
    "/datalogs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DatalogUploadResponse,
    summary="Upload a JSON datalog for asynchronous exposure computation.",
)
async def upload_datalog(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="JSON datalog downloaded from an instrument."),
    processor: DatalogProcessor = Depends(get_processor),
) -> DatalogUploadResponse:
    try:
        file_id = processor.enqueue_file(background_tasks, file)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return DatalogUploadResponse(file_id=file_id)


@router.get(
    "/datalogs/{file_id}",
    response_model=ExposureReport,
    summary="Fetch processing status and exposure for a datalog.",
)
async def get_exposure_report(
    file_id: str,
    processor: DatalogProcessor = Depends(get_processor),
) -> ExposureReport:
    try:
        return processor.fetch_result(file_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc


@router.get(
    "/datalogs/{file_id}/sensors/{uid}",
    response_model=SensorExposure,
    summary="Fetch the exposure computed for one sensor of a datalog.",
)
async def get_sensor_exposure(
    file_id: str,
    uid: str,
    processor: DatalogProcessor = Depends(get_processor),
) -> SensorExposure:
    try:
        return processor.fetch_sensor(file_id, uid)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
