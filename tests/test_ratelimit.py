"""Per-client request limits on the expensive endpoints."""

import ratelimit

ASSEMBLE_BODY = {"affirmations": ["I am calm"], "voiceId": "v1", "backingTrackId": "1"}
GENERATE_BODY = {"themes": ["sleep"], "count": 1}


def test_assembly_limit(client, synthesizer):
    for remaining in (4, 3, 2, 1, 0):
        resp = client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY)
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Limit"] == "5"
        assert resp.headers["X-RateLimit-Remaining"] == str(remaining)

    resp = client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY)
    assert resp.status_code == 429
    assert resp.json() == {"detail": ratelimit.ASSEMBLY_LIMIT_MESSAGE}
    assert int(resp.headers["Retry-After"]) > 0
    # the rejected request never reached the pipeline
    assert len(synthesizer.calls) == 5


def test_generation_limit(client, generator):
    for _ in range(20):
        assert client.post("/v1/affirmations/generate", json=GENERATE_BODY).status_code == 200

    resp = client.post("/v1/affirmations/generate", json=GENERATE_BODY)
    assert resp.status_code == 429
    assert resp.json() == {"detail": ratelimit.AFFIRMATION_LIMIT_MESSAGE}
    assert len(generator.calls) == 20


def test_limits_are_counted_per_endpoint(client):
    for _ in range(5):
        client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY)
    assert client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY).status_code == 429
    assert client.post("/v1/affirmations/generate", json=GENERATE_BODY).status_code == 200


def test_reset_clears_counters(client):
    for _ in range(5):
        client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY)
    assert client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY).status_code == 429

    ratelimit.limiter.reset()
    assert client.post("/v1/tracks/assemble", json=ASSEMBLE_BODY).status_code == 200
