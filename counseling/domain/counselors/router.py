"""Counselor router - API endpoints for counselor profiles, favorites, clients and session notes"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Counselor, FavoriteCounselor, SessionNote, User
from .schemas import (
    ClientOverviewResponse,
    CounselorCreate,
    CounselorResponse,
    CounselorUpdate,
    FavoriteResponse,
    SessionNoteCreate,
    SessionNoteResponse,
    SessionNoteUpdate,
)
from .service import ClientOverview, CounselorService, SessionNoteService

router = APIRouter(prefix="/counselors", tags=["Counselors"])
favorites_router = APIRouter(prefix="/favorites", tags=["Favorites"])
notes_router = APIRouter(prefix="/session-notes", tags=["Session Notes"])


def get_counselor_service(db: Session = Depends(get_db)) -> CounselorService:
    """Dependency to get counselor service"""
    return CounselorService(db)


def get_session_note_service(db: Session = Depends(get_db)) -> SessionNoteService:
    return SessionNoteService(db)


def to_counselor_response(counselor: Counselor) -> CounselorResponse:
    user = counselor.user
    return CounselorResponse(
        id=counselor.id,
        userId=counselor.user_id,
        name=user.name if user else None,
        avatar=user.avatar if user else None,
        bio=counselor.bio,
        specialties=counselor.specialties or [],
        profileImage=counselor.profile_image,
        hourlyRate=counselor.hourly_rate,
        isActive=counselor.is_active,
        rating=counselor.rating,
        reviewCount=counselor.review_count,
        createdAt=counselor.created_at,
        updatedAt=counselor.updated_at,
    )


def to_favorite_response(favorite: FavoriteCounselor) -> FavoriteResponse:
    return FavoriteResponse(
        id=favorite.id,
        counselor=to_counselor_response(favorite.counselor),
        createdAt=favorite.created_at,
    )


def to_client_overview_response(entry: ClientOverview) -> ClientOverviewResponse:
    return ClientOverviewResponse(
        clientId=entry.client.id,
        name=entry.client.name,
        email=entry.client.email,
        totalBookings=entry.total_bookings,
        completedSessions=entry.completed_sessions,
        upcomingSessions=entry.upcoming_sessions,
        lastSessionAt=entry.last_session_at,
        nextSessionAt=entry.next_session_at,
    )


def to_session_note_response(note: SessionNote) -> SessionNoteResponse:
    return SessionNoteResponse(
        id=note.id,
        bookingId=note.booking_id,
        counselorId=note.counselor_id,
        clientId=note.client_id,
        clientName=note.client.name if note.client else None,
        sessionDate=note.session_date,
        durationMinutes=note.duration_minutes,
        sessionType=note.session_type,
        moodBefore=note.mood_before,
        moodAfter=note.mood_after,
        summary=note.summary,
        keyTopics=note.key_topics or [],
        clientGoals=note.client_goals or [],
        progressNotes=note.progress_notes,
        homeworkAssigned=note.homework_assigned,
        nextSessionFocus=note.next_session_focus,
        effectiveness=note.effectiveness,
        requiresFollowup=note.requires_followup,
        crisisFlag=note.crisis_flag,
        confidentialNotes=note.confidential_notes,
        createdAt=note.created_at,
        updatedAt=note.updated_at,
    )


@router.get("", response_model=list[CounselorResponse])
async def list_counselors(
    specialty: Optional[str] = Query(None, max_length=100),
    service: CounselorService = Depends(get_counselor_service),
):
    """Public directory of active counselors, best rated first"""
    return [to_counselor_response(c) for c in service.list_counselors(specialty)]


@router.get("/me", response_model=CounselorResponse)
async def get_my_profile(
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    return to_counselor_response(service.get_own_profile(current_user))


@router.post("/me", response_model=CounselorResponse, status_code=201)
async def create_my_profile(
    data: CounselorCreate,
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    return to_counselor_response(service.create_profile(data, current_user))


@router.patch("/me", response_model=CounselorResponse)
async def update_my_profile(
    data: CounselorUpdate,
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    return to_counselor_response(service.update_profile(data, current_user))


@router.get("/me/clients", response_model=list[ClientOverviewResponse])
async def list_my_clients(
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    return [to_client_overview_response(e) for e in service.list_clients(current_user)]


@router.get("/{counselor_id}", response_model=CounselorResponse)
async def get_counselor(
    counselor_id: int,
    service: CounselorService = Depends(get_counselor_service),
):
    return to_counselor_response(service.get_counselor(counselor_id))


@favorites_router.get("", response_model=list[FavoriteResponse])
async def list_favorites(
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    return [to_favorite_response(f) for f in service.list_favorites(current_user)]


@favorites_router.post("/{counselor_id}", response_model=FavoriteResponse, status_code=201)
async def add_favorite(
    counselor_id: int,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    favorite, created = service.add_favorite(counselor_id, current_user)
    if not created:
        response.status_code = status.HTTP_200_OK
    return to_favorite_response(favorite)


@favorites_router.delete("/{counselor_id}", status_code=204)
async def remove_favorite(
    counselor_id: int,
    current_user: User = Depends(get_current_user),
    service: CounselorService = Depends(get_counselor_service),
):
    service.remove_favorite(counselor_id, current_user)


@notes_router.post("", response_model=SessionNoteResponse, status_code=201)
async def create_session_note(
    data: SessionNoteCreate,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return to_session_note_response(service.create_note(data, current_user))


@notes_router.get("", response_model=list[SessionNoteResponse])
async def list_session_notes(
    client_id: Optional[int] = Query(None, alias="clientId"),
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    """The caller's session notes, latest session first"""
    return [to_session_note_response(n) for n in service.list_notes(current_user, client_id)]


@notes_router.get("/bookings/{booking_id}", response_model=SessionNoteResponse)
async def get_booking_session_note(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return to_session_note_response(service.get_note_for_booking(booking_id, current_user))


@notes_router.patch("/{note_id}", response_model=SessionNoteResponse)
async def update_session_note(
    note_id: int,
    data: SessionNoteUpdate,
    current_user: User = Depends(get_current_user),
    service: SessionNoteService = Depends(get_session_note_service),
):
    return to_session_note_response(service.update_note(note_id, data, current_user))
