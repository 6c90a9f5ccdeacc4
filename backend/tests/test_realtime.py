"""
Tests de la passerelle temps réel (WebSocket /ws).
Les services sont mockés : on vérifie l'authentification, le routage des
événements vers les salles et le renvoi des erreurs à la seule connexion d'origine.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi.websockets import WebSocketDisconnect

from classsync.exceptions import Forbidden, PersistenceError, ValidationFailed
from classsync.schemas.chat import ChatMessageResponse, ChatSender, NoteResponse
from classsync.security import create_access_token
from classsync.services.session_service import StateChange


@pytest.fixture(autouse=True)
def services():
    """Aucune session BDD réelle ; contrôle d'accès accepté par défaut."""
    with patch("classsync.routers.realtime.SessionLocal", MagicMock()), \
         patch("classsync.services.access.require_group_writer") as writer, \
         patch("classsync.services.note_service.update_note") as update_note, \
         patch("classsync.services.session_service.apply_teacher_command") as command, \
         patch("classsync.services.chat_service.send_message") as send_message, \
         patch("classsync.services.chat_service.get_history") as get_history, \
         patch("classsync.services.chat_service.delete_message") as delete_message:
        yield {
            "writer": writer, "update_note": update_note, "command": command,
            "send_message": send_message, "get_history": get_history, "delete_message": delete_message,
        }


def ws_url(user_id, role="STUDENT"):
    return f"/ws?token={create_access_token(user_id, role)}"


def join(ws, class_id, group_id=None, user_id=None):
    data = {"classId": str(class_id)}
    if group_id is not None:
        data["groupId"] = group_id
    if user_id is not None:
        data["userId"] = str(user_id)
    ws.send_json({"event": "join_room", "data": data})
    return ws.receive_json()


def make_message(class_id, sender_id, text="Bonjour", group_id=None):
    return ChatMessageResponse(
        id=uuid.uuid4(), class_id=class_id, group_id=group_id, text=text,
        timestamp=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
        sender=ChatSender(id=sender_id, name="Léa", role="STUDENT"),
    )


def assert_nothing_pending(ws):
    """Une trame invalide reçoit `error` : si une autre trame attendait, elle arriverait avant."""
    ws.send_text("pas du json")
    assert ws.receive_json()["event"] == "error"


# ============================================================
# Authentification
# ============================================================

def test_connexion_sans_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws"):
            pass
    assert exc_info.value.code == 4401


def test_connexion_token_invalide(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=pas-un-jwt"):
            pass
    assert exc_info.value.code == 4401


# ============================================================
# join_room / présence
# ============================================================

def test_join_classe_diffuse_presence(client):
    class_id, user_id = uuid.uuid4(), uuid.uuid4()
    with client.websocket_connect(ws_url(user_id)) as ws:
        joined = join(ws, class_id, user_id=user_id)
        online = ws.receive_json()

    assert joined == {"event": "room:joined", "data": {"room": f"class_{class_id}"}}
    assert online["event"] == "users:online"
    assert online["data"]["onlineUsers"] == [str(user_id)]


def test_join_groupe_refuse(client, services):
    services["writer"].side_effect = Forbidden("Vous ne faites pas partie du groupe 2.")
    user_id = uuid.uuid4()
    with client.websocket_connect(ws_url(user_id)) as ws:
        response = join(ws, uuid.uuid4(), group_id=2)

    assert response["event"] == "error"
    assert response["data"]["event"] == "join_room"
    assert "groupe 2" in response["data"]["error"]


def test_deconnexion_met_a_jour_presence(client):
    class_id = uuid.uuid4()
    teacher_id, student_id = uuid.uuid4(), uuid.uuid4()
    with client.websocket_connect(ws_url(teacher_id, "TEACHER")) as teacher_ws:
        join(teacher_ws, class_id, user_id=teacher_id)
        teacher_ws.receive_json()

        with client.websocket_connect(ws_url(student_id)) as student_ws:
            join(student_ws, class_id, user_id=student_id)
            arrived = teacher_ws.receive_json()

        left = teacher_ws.receive_json()

    assert sorted(arrived["data"]["onlineUsers"]) == sorted([str(teacher_id), str(student_id)])
    assert left["data"]["onlineUsers"] == [str(teacher_id)]


# ============================================================
# note:update
# ============================================================

def test_note_diffusee_aux_autres_membres(client, services):
    class_id = uuid.uuid4()
    author_id, reader_id = uuid.uuid4(), uuid.uuid4()
    services["update_note"].return_value = NoteResponse(
        class_id=class_id, group_id=1, content="Hypothèse : ...",
        updated_at=datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc), updated_by=author_id,
    )

    with client.websocket_connect(ws_url(author_id)) as author, \
         client.websocket_connect(ws_url(reader_id)) as reader:
        join(author, class_id, group_id=1)
        join(reader, class_id, group_id=1)

        author.send_json({"event": "note:update", "data": {
            "classId": str(class_id), "groupId": 1, "content": "Hypothèse : ...", "userId": str(author_id),
        }})
        received = reader.receive_json()
        assert_nothing_pending(author)

    assert received["event"] == "note:updated"
    assert received["data"]["content"] == "Hypothèse : ..."
    assert received["data"]["updatedBy"] == str(author_id)


def test_note_userid_usurpe(client, services):
    class_id, user_id = uuid.uuid4(), uuid.uuid4()
    with client.websocket_connect(ws_url(user_id)) as ws:
        join(ws, class_id, group_id=1)
        ws.send_json({"event": "note:update", "data": {
            "classId": str(class_id), "groupId": 1, "content": "x", "userId": str(uuid.uuid4()),
        }})
        response = ws.receive_json()

    assert response["event"] == "note:error"
    services["update_note"].assert_not_called()


# ============================================================
# Commandes enseignant
# ============================================================

def test_start_class_diffuse_etat(client, services):
    class_id = uuid.uuid4()
    teacher_id, student_id = uuid.uuid4(), uuid.uuid4()
    services["command"].return_value = StateChange(
        class_id=class_id, previous_status="WAITING_ROOM", status="MAIN_SESSION", message="La séance commence.",
    )

    with client.websocket_connect(ws_url(teacher_id, "TEACHER")) as teacher_ws, \
         client.websocket_connect(ws_url(student_id)) as student_ws:
        join(teacher_ws, class_id)
        join(student_ws, class_id)

        teacher_ws.send_json({"event": "teacher:start-class", "data": {"classId": str(class_id)}})
        student_event = student_ws.receive_json()
        teacher_event = teacher_ws.receive_json()

    assert student_event["event"] == "class:state-changed"
    assert student_event["data"]["status"] == "MAIN_SESSION"
    assert teacher_event == student_event
    args = services["command"].call_args[0]
    assert args[1] == class_id
    assert args[2].id == teacher_id
    assert args[3] == "teacher:start-class"


def test_commande_echec_persistance(client, services):
    class_id = uuid.uuid4()
    teacher_id, student_id = uuid.uuid4(), uuid.uuid4()
    services["command"].side_effect = PersistenceError("Enregistrement impossible, réessayez.")

    with client.websocket_connect(ws_url(teacher_id, "TEACHER")) as teacher_ws, \
         client.websocket_connect(ws_url(student_id)) as student_ws:
        join(teacher_ws, class_id)
        join(student_ws, class_id)

        teacher_ws.send_json({"event": "teacher:end-class", "data": {"classId": str(class_id)}})
        response = teacher_ws.receive_json()
        assert_nothing_pending(student_ws)

    assert response["event"] == "teacher:error"
    assert "réessayez" in response["data"]["error"]


# ============================================================
# Trames invalides
# ============================================================

def test_evenement_inconnu(client):
    with client.websocket_connect(ws_url(uuid.uuid4())) as ws:
        ws.send_json({"event": "admin:drop-all", "data": {}})
        response = ws.receive_json()

    assert response["event"] == "error"
    assert response["data"]["event"] == "admin:drop-all"


def test_payload_invalide(client):
    with client.websocket_connect(ws_url(uuid.uuid4())) as ws:
        ws.send_json({"event": "note:update", "data": {"classId": "pas-un-uuid"}})
        response = ws.receive_json()

    assert response["event"] == "error"
    assert response["data"]["event"] == "note:update"


def test_typing_hors_salle(client):
    with client.websocket_connect(ws_url(uuid.uuid4())) as ws:
        ws.send_json({"event": "chat:typing", "data": {
            "classId": str(uuid.uuid4()), "userName": "Léa", "isTyping": True,
        }})
        response = ws.receive_json()

    assert response["event"] == "chat:error"


# ============================================================
# Chat
# ============================================================

def test_chat_message_diffuse_au_groupe_seulement(client, services):
    class_id = uuid.uuid4()
    author_id, peer_id, observer_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    message = make_message(class_id, author_id, "On commence par la question 2 ?", group_id=1)
    services["send_message"].return_value = message

    with client.websocket_connect(ws_url(author_id)) as author, \
         client.websocket_connect(ws_url(peer_id)) as peer, \
         client.websocket_connect(ws_url(observer_id)) as observer:
        join(author, class_id, group_id=1)
        join(peer, class_id, group_id=1)
        join(observer, class_id)

        author.send_json({"event": "chat:message", "data": {
            "classId": str(class_id), "groupId": 1, "message": message.text,
            "userId": str(author_id), "userName": "Léa",
        }})
        peer_event = peer.receive_json()
        author_event = author.receive_json()
        assert_nothing_pending(observer)

    assert peer_event["event"] == "chat:message:received"
    assert peer_event["data"]["id"] == str(message.id)
    assert peer_event["data"]["sender"] == {"id": str(author_id), "name": "Léa", "role": "STUDENT"}
    assert peer_event["data"]["groupId"] == 1
    assert peer_event["data"]["isAI"] is False
    assert author_event == peer_event
    args = services["send_message"].call_args[0]
    assert args[1:3] == (class_id, 1)
    assert args[4] == message.text


def test_chat_message_userid_usurpe(client, services):
    class_id, user_id = uuid.uuid4(), uuid.uuid4()
    with client.websocket_connect(ws_url(user_id)) as ws:
        join(ws, class_id)
        ws.send_json({"event": "chat:message", "data": {
            "classId": str(class_id), "message": "Bonjour", "userId": str(uuid.uuid4()),
        }})
        response = ws.receive_json()

    assert response["event"] == "chat:error"
    services["send_message"].assert_not_called()


def test_chat_message_vide(client, services):
    class_id, user_id = uuid.uuid4(), uuid.uuid4()
    services["send_message"].side_effect = ValidationFailed("Le message ne peut pas être vide.")

    with client.websocket_connect(ws_url(user_id)) as author, \
         client.websocket_connect(ws_url(uuid.uuid4())) as peer:
        join(author, class_id)
        join(peer, class_id)
        author.send_json({"event": "chat:message", "data": {
            "classId": str(class_id), "message": "   ", "userId": str(user_id),
        }})
        response = author.receive_json()
        assert_nothing_pending(peer)

    assert response == {"event": "chat:error", "data": {"error": "Le message ne peut pas être vide."}}


def test_chat_history_renvoye_au_demandeur_seulement(client, services):
    class_id = uuid.uuid4()
    requester_id, peer_id = uuid.uuid4(), uuid.uuid4()
    services["get_history"].return_value = [
        make_message(class_id, peer_id, "premier"),
        make_message(class_id, requester_id, "deuxième"),
    ]

    with client.websocket_connect(ws_url(requester_id)) as requester, \
         client.websocket_connect(ws_url(peer_id)) as peer:
        join(requester, class_id)
        join(peer, class_id)

        requester.send_json({"event": "chat:history", "data": {"classId": str(class_id), "limit": 2}})
        response = requester.receive_json()
        assert_nothing_pending(peer)

    assert response["event"] == "chat:history:loaded"
    assert [m["text"] for m in response["data"]["messages"]] == ["premier", "deuxième"]
    assert services["get_history"].call_args[0][4] == 2


def test_chat_delete_diffuse_la_suppression(client, services):
    class_id = uuid.uuid4()
    author_id, peer_id = uuid.uuid4(), uuid.uuid4()
    deleted = make_message(class_id, author_id, "Oups")
    services["delete_message"].return_value = deleted

    with client.websocket_connect(ws_url(author_id)) as author, \
         client.websocket_connect(ws_url(peer_id)) as peer:
        join(author, class_id)
        join(peer, class_id)

        author.send_json({"event": "chat:delete", "data": {"messageId": str(deleted.id)}})
        peer_event = peer.receive_json()
        author_event = author.receive_json()

    assert peer_event == {"event": "chat:message:deleted", "data": {
        "id": str(deleted.id), "classId": str(class_id), "groupId": None,
    }}
    assert author_event == peer_event


def test_chat_delete_interdit(client, services):
    services["delete_message"].side_effect = Forbidden("Seul l'auteur du message ou l'enseignant peut le supprimer.")
    with client.websocket_connect(ws_url(uuid.uuid4())) as ws:
        ws.send_json({"event": "chat:delete", "data": {"messageId": str(uuid.uuid4())}})
        response = ws.receive_json()

    assert response["event"] == "chat:error"


def test_message_rest_atteint_les_connexions_ouvertes(client, services, student, student_headers):
    class_id = uuid.uuid4()
    message = make_message(class_id, student.id, "Envoyé hors connexion temps réel")
    services["send_message"].return_value = message

    with client.websocket_connect(ws_url(uuid.uuid4())) as listener:
        join(listener, class_id)
        response = client.post("/api/v1/chat/messages", json={
            "class_id": str(class_id), "text": message.text,
        }, headers=student_headers)
        received = listener.receive_json()

    assert response.status_code == 201
    assert received["event"] == "chat:message:received"
    assert received["data"]["id"] == str(message.id)
