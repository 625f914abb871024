from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from labguard.auth import Account, require_auth, require_role
from .certificate import certificate_filename, render_certificate_pdf
from .lifecycle import ANALYSIS, ASSIGN, VALIDATE
from .schemas import AnalysisRequest, AssignRequest, SampleCreate, ValidateRequest
from .service import SampleService

router = APIRouter(prefix="/api/samples", tags=["Muestras"])


def get_sample_service(request: Request) -> SampleService:
    return SampleService(request.app.state.supabase)


@router.get("")
def listar_muestras(
    status: Optional[str] = None,
    account: Account = Depends(require_auth),
    service: SampleService = Depends(get_sample_service),
):
    """Listar muestras (máx. 200), con filtro opcional por estado"""
    return {"data": service.list_samples(status)}


@router.post("")
def crear_muestra(
    sample_data: SampleCreate,
    account: Account = Depends(require_auth),
    service: SampleService = Depends(get_sample_service),
):
    """Registrar muestra en recepción; siempre queda en por_asignar"""
    return {"data": service.create_sample(sample_data.model_dump(), account.id)}


@router.post("/{sample_id}/assign")
def asignar_muestra(
    sample_id: str,
    body: AssignRequest,
    account: Account = Depends(require_role(*ASSIGN.roles)),
    service: SampleService = Depends(get_sample_service),
):
    """Asignar analista y fecha límite -> esperando_analisis"""
    return {"data": service.assign(sample_id, body.analyst_id, body.due_date)}


@router.post("/{sample_id}/analysis")
def enviar_analisis(
    sample_id: str,
    body: AnalysisRequest,
    account: Account = Depends(require_role(*ANALYSIS.roles)),
    service: SampleService = Depends(get_sample_service),
):
    """El analista envía resultados -> pendiente_validacion"""
    return {"data": service.submit_analysis(sample_id, body.analysis_payload)}


@router.post("/{sample_id}/validate")
def validar_muestra(
    sample_id: str,
    body: ValidateRequest,
    account: Account = Depends(require_role(*VALIDATE.roles)),
    service: SampleService = Depends(get_sample_service),
):
    """El evaluador valida y certifica -> evaluada"""
    return {
        "data": service.validate(
            sample_id,
            body.validation_payload,
            body.certification_status,
            account.id,
        )
    }


# Public on purpose: the certificate link is shared outside the app
@router.get("/{sample_id}/pdf")
def certificado_pdf(
    sample_id: str,
    service: SampleService = Depends(get_sample_service),
):
    """Generar certificado PDF con el payload actual de la muestra"""
    sample = service.get_sample(sample_id)
    content = render_certificate_pdf(sample)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{certificate_filename(sample)}"'},
    )
