from fastapi import APIRouter, Depends

from studyhub import models, schemas
from studyhub.exceptions import StudyHubException
from studyhub.services import chatbot_service
from studyhub.utils.security import get_current_user

router = APIRouter(prefix="/chatbot", tags=["Chatbot"])


@router.post("/ask", response_model=schemas.ChatbotAnswer)
def ask_chatbot(
    payload: schemas.ChatbotQuestion,
    current_user: models.User = Depends(get_current_user),
):
    try:
        return chatbot_service.ask(payload.message)
    except StudyHubException as exc:
        raise exc.to_http_exception()
