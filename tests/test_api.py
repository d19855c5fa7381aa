# tests/test_api.py
from urllib.parse import unquote, urlsplit

from mediavault.auth_api import allowed_path
from mediavault.config import settings

from .conftest import PASSWORD, SOMETHING_UUID, USER, bearer, login


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


# -------- auth --------
def test_token_login_and_refresh(client):
    tokens = login(client)
    r = client.get("/api/home", headers=bearer(tokens["AccessToken"]))
    assert r.status_code == 200

    r = client.get("/api/token", headers=bearer(tokens["RefreshToken"]))
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"AccessToken", "RefreshToken"}
    assert body["RefreshToken"] == tokens["RefreshToken"]


def test_bad_password(client):
    r = client.post("/api/token", json={"user": USER, "pass": "nope"})
    assert r.status_code == 401
    assert r.json() == {"detail": "key-mismatch"}


def test_no_credentials_is_unauthorized(client):
    r = client.get("/api/playlists")
    assert r.status_code == 401


def test_media_token_not_accepted_for_api(client):
    tokens = login(client)
    r = client.get("/api/playlists", headers=bearer(tokens["MediaToken"]))
    assert r.status_code == 401
    assert r.json()["detail"].startswith("invalid-token")


def test_cookie_login_and_logout(client):
    r = client.post("/api/login", json={"user": USER, "pass": PASSWORD})
    assert r.status_code == 200
    assert settings.APP_NAME in client.cookies

    assert client.get("/api/playlists").status_code == 200

    assert client.post("/api/logout").status_code == 204
    client.cookies.clear()
    assert client.get("/api/playlists").status_code == 401


def test_cookie_refreshed_on_no_content_responses(client):
    client.post("/api/login", json={"user": USER, "pass": PASSWORD})
    pid = client.post("/api/playlists", json={"playlist": {"title": "x"}}).json()["id"]
    r = client.patch(f"/api/playlists/{pid}/playlist", json=[
        {"op": "replace", "path": "/playlist/title", "value": "renamed"},
    ])
    assert r.status_code == 204
    cookies = r.headers.get_list("set-cookie")
    assert len(cookies) == 1 and cookies[0].startswith(f"{settings.APP_NAME}=")
    assert "Max-Age=0" not in cookies[0]

    # logout clears the cookie rather than refreshing it
    r = client.post("/api/logout")
    [cleared] = r.headers.get_list("set-cookie")
    assert "Max-Age=0" in cleared


def test_bad_cookie_redirects_to_login(client):
    r = client.get("/api/playlists", headers={"Cookie": f"{settings.APP_NAME}=not-a-session"},
                   follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/login"


def test_pairing(client):
    r = client.get("/api/code")
    assert r.status_code == 200
    code, code_token = r.json()["Code"], r.json()["AccessToken"]

    # not linked yet
    r = client.post("/api/code", headers=bearer(code_token))
    assert r.status_code == 403

    r = client.post("/api/link", json={"user": USER, "pass": PASSWORD, "code": code})
    assert r.status_code == 204

    r = client.post("/api/code", headers=bearer(code_token), json={"code": code})
    assert r.status_code == 200
    assert set(r.json()) == {"AccessToken", "MediaToken", "RefreshToken"}


def test_link_unknown_code(client):
    r = client.post("/api/link", json={"user": USER, "pass": PASSWORD, "code": "ZZZZZZ"})
    assert r.status_code == 401
    assert r.json() == {"detail": "invalid-code"}


# -------- playlists --------
def test_playlist_create_patch_get(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/playlists", headers=h, json={
        "playlist": {"title": "my test", "entry": [
            {"creator": "Someone", "title": "first", "identifier": ["abc"], "size": [123],
             "location": ["https://example.com/abc.mp3"]},
        ]},
    })
    assert r.status_code == 201
    created = r.json()
    assert created["name"] == "my test"

    r = client.get("/api/playlists", headers=h)
    assert [p["id"] for p in r.json()] == [created["id"]]

    r = client.patch(f"/api/playlists/{created['id']}/playlist", headers=h, json=[
        {"op": "add", "path": "/playlist/entry/-", "value": {"ref": "/music/tracks/102"}},
    ])
    assert r.status_code == 200
    entries = r.json()["playlist"]["entry"]
    assert len(entries) == 2
    assert entries[1]["title"] == "Something"
    assert entries[1]["identifier"] == ["E"]

    r = client.get(f"/api/playlists/{created['id']}/playlist", headers=h)
    assert len(r.json()["playlist"]["entry"]) == 2
    assert r.json()["playlist"]["location"] == f"/api/playlists/{created['id']}/playlist"

    r = client.get(f"/api/playlists/{created['id']}", headers=h)
    assert r.json()["entries"] == 2


def test_playlist_title_only_patch_is_no_content(client):
    h = bearer(login(client)["AccessToken"])
    pid = client.post("/api/playlists", headers=h, json={"playlist": {"title": "x"}}).json()["id"]
    r = client.patch(f"/api/playlists/{pid}/playlist", headers=h, json=[
        {"op": "replace", "path": "/playlist/title", "value": "renamed"},
    ])
    assert r.status_code == 204
    assert client.get(f"/api/playlists/{pid}", headers=h).json()["name"] == "renamed"


def test_playlist_without_title_rejected(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/playlists", headers=h, json={"playlist": {"entry": []}})
    assert r.status_code == 400
    assert r.json() == {"detail": "missing-title"}


def test_playlist_delete(client):
    h = bearer(login(client)["AccessToken"])
    pid = client.post("/api/playlists", headers=h, json={"playlist": {"title": "gone"}}).json()["id"]
    assert client.delete(f"/api/playlists/{pid}", headers=h).status_code == 204
    assert client.get(f"/api/playlists/{pid}", headers=h).status_code == 404


def test_active_playlist(client):
    h = bearer(login(client)["AccessToken"])
    r = client.get("/api/playlist", headers=h)
    assert r.status_code == 200
    assert r.json()["playlist"]["location"] == "/api/playlist"
    assert r.json()["playlist"]["entry"] == []

    r = client.patch("/api/playlist", headers=h, json=[
        {"op": "add", "path": "/playlist/entry/-", "value": {"$ref": "/music/releases/re-abbey/tracks"}},
    ])
    assert r.status_code == 200
    assert [e["title"] for e in r.json()["playlist"]["entry"]] == [
        "Come Together", "Something", "Here Comes the Sun"]


def test_invalid_patch(client):
    h = bearer(login(client)["AccessToken"])
    r = client.patch("/api/playlist", headers=h, json=[{"op": "remove", "path": "/nope/0"}])
    assert r.status_code == 400


# -------- activity and progress --------
def test_activity_tracks(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/activity", headers=h, json=[
        {"kind": "track", "date": "2024-12-04T10:00:00Z", "etag": "E"},
        {"kind": "track", "date": "2024-12-05T10:00:00Z", "rid": "rid-101"},
        {"kind": "track", "date": "2024-12-06T10:00:00Z", "etag": "unknown"},
    ])
    assert r.status_code == 204

    r = client.get("/api/activity/tracks", headers=h, params={"start": "2024-12-01", "end": "2024-12-31"})
    assert r.status_code == 200
    tracks = r.json()["tracks"]
    assert [t["track"]["rid"] for t in tracks] == ["rid-101", "R"]


def test_activity_grouped_form(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/activity", headers=h, json={
        "TrackEvents": [{"Date": "2024-12-04T10:00:00Z", "ETag": "etag-103"}],
    })
    assert r.status_code == 204
    r = client.get("/api/activity", headers=h, params={"start": "2024-12-01", "end": "2024-12-31"})
    assert [t["track"]["title"] for t in r.json()["tracks"]] == ["Here Comes the Sun"]


def test_activity_charts_for_all_time_and_bad_intervals(client):
    h = bearer(login(client)["AccessToken"])
    client.post("/api/activity", headers=h, json=[{"kind": "track", "date": "2024-12-04T10:00:00Z", "etag": "E"}])

    r = client.get("/api/activity/tracks/all/chart", headers=h)
    assert r.status_code == 200
    [dataset] = r.json()["datasets"]
    assert r.json()["labels"][0] == "Dec 2024"
    assert dataset["data"][0] == 1

    r = client.get("/api/activity/tracks/all/counts", headers=h)
    assert r.json()["counts"][0] == {"date": "2024-12-01", "count": 1}

    assert client.get("/api/activity/tracks/yesteryear/chart", headers=h).status_code == 400
    assert client.get("/api/activity/tracks/nonsense", headers=h).status_code == 400


def test_progress(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/progress", headers=h, json={"offsets": [
        {"etag": "E", "offset": 60, "duration": 240, "date": "2024-12-04T10:00:00Z"},
    ]})
    assert r.status_code == 204

    offsets = client.get("/api/progress", headers=h).json()["offsets"]
    assert len(offsets) == 1
    assert offsets[0]["offset"] == 60 and offsets[0]["duration"] == 240

    assert client.delete(f"/api/progress/{offsets[0]['id']}", headers=h).status_code == 204
    assert client.get("/api/progress", headers=h).json()["offsets"] == []


def test_progress_rejects_negative_offset(client):
    h = bearer(login(client)["AccessToken"])
    r = client.post("/api/progress", headers=h, json=[{"etag": "E", "offset": -1, "date": "2024-12-04T10:00:00Z"}])
    assert r.status_code == 400


# -------- locations and downloads --------
def test_track_location_redirects_to_download(client, music_root):
    media_token = login(client)["MediaToken"]
    r = client.get(f"/api/tracks/{SOMETHING_UUID}/location", headers=bearer(media_token),
                   follow_redirects=False)
    assert r.status_code == 307
    url = r.headers["location"]
    assert url.startswith("/d/")
    assert unquote(urlsplit(url).path)[2:].endswith("Abbey Road (1969)/02-Something.mp3")

    r = client.get(url)
    assert r.status_code == 200
    assert r.content == b"ID3 not really an mp3"


def test_unknown_track_location(client):
    media_token = login(client)["MediaToken"]
    r = client.get("/api/tracks/00000000-0000-0000-0000-000000000000/location", headers=bearer(media_token))
    assert r.status_code == 404


def test_download_requires_matching_token(client, music_root, monkeypatch):
    media_token = login(client)["MediaToken"]
    url = client.get(f"/api/tracks/{SOMETHING_UUID}/location", headers=bearer(media_token),
                     follow_redirects=False).headers["location"]
    path, token = url.split("?token=")
    other = path.replace("02-Something", "01-Come%20Together")
    assert client.get(f"{other}?token={token}").status_code == 401
    monkeypatch.setattr(settings, "EXCLUDE_DIRS", music_root.as_posix())
    assert client.get(url).status_code == 403


def test_include_dirs_match_whole_path_components(client, music_root, monkeypatch):
    private = music_root.parent / "music-private"
    private.mkdir()
    secret = private / "secret.mp3"
    secret.write_bytes(b"not for you")
    monkeypatch.setattr(settings, "INCLUDE_DIRS", music_root.as_posix())

    assert allowed_path((music_root / "The Beatles" / "x.mp3").as_posix())
    assert not allowed_path(secret.as_posix())
    assert not allowed_path(music_root.as_posix() + "/../music-private/secret.mp3")

    token = client.app.state.auth.new_file_token(secret.as_posix())
    assert client.get(f"/d{secret.as_posix()}", params={"token": token}).status_code == 403

    monkeypatch.setattr(settings, "INCLUDE_DIRS", "")
    monkeypatch.setattr(settings, "EXCLUDE_DIRS", music_root.as_posix() + "/")
    assert allowed_path(secret.as_posix())
    assert not allowed_path((music_root / "a.mp3").as_posix())


def test_search(client):
    h = bearer(login(client)["AccessToken"])
    assert client.get("/api/search", headers=h).status_code == 400
    r = client.get("/api/search", headers=h, params={"q": "something"})
    assert r.status_code == 200
    assert [t["title"] for t in r.json()["tracks"]] == ["Something"]
