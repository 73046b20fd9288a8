import json

import pytest

from fakes import RecordingEngine, RecordingStorage, make_image, open_image

from imgops.api.api import Api
from imgops.io.env import Settings
from imgops.io.exceptions import InvalidArgumentError, StorageFailureError


class TestApi:

    @pytest.fixture(scope="class")
    def api(self):
        """Api on the real engine, without storage."""
        return Api(settings=Settings(persist=False))

    @pytest.fixture(scope="class")
    def buf(self):
        return make_image(size=(40, 30))

    def test_operations(self, api):
        assert set(api.operations) == {
            "info", "resize", "enlarge", "extract", "crop", "rotate",
            "flip", "flop", "thumbnail", "zoom", "convert", "watermark",
        }

    def test_run(self, api, buf):
        result = api.run("resize", buf, {"width": 20})
        assert open_image(result.body).size == (20, 15)

    def test_named_methods(self, api, buf):
        info = json.loads(api.info(buf).body)
        assert (info["width"], info["height"]) == (40, 30)
        assert api.convert(buf, {"type": "jpeg"}).mime == "image/jpeg"

    def test_unknown_operation(self, api, buf):
        with pytest.raises(InvalidArgumentError):
            api.run("explode", buf)
        with pytest.raises(AttributeError):
            api.explode(buf)

    def test_invalid_raw_options(self, api, buf):
        with pytest.raises(InvalidArgumentError):
            api.run("rotate", buf, {"rotate": 33})

    def test_missing_param(self, api, buf):
        with pytest.raises(InvalidArgumentError) as info:
            api.run("resize", buf, {})
        assert info.value.to_dict() == {
            "message": "Missing required param: height or width",
            "code": 400,
            "kind": "invalid_argument",
        }


class TestApiDeadlines:

    def test_no_executor_without_timeouts(self):
        api = Api(engine=RecordingEngine(), settings=Settings(persist=False))
        assert api.context.executor is None

    def test_bounded_executor(self):
        settings = Settings(persist=False, engine_timeout=5, deadline_workers=3)
        api = Api(engine=RecordingEngine(), settings=settings)
        assert api.context.executor._max_workers == 3
        assert api.run("flip", b"buf").mime == "image/png"
        api.executor.shutdown()


class TestApiPersistence:

    def test_upload(self):
        storage = RecordingStorage()
        api = Api(engine=RecordingEngine(), storage=storage, settings=Settings(persist=True))
        api.run("flip", b"buf", {"bucketName": "photos", "objectName": "flipped.png"})
        api.run("flip", b"buf", {})
        assert [(bucket, key) for bucket, key, _, _ in storage.uploads] == [("photos", "flipped.png")]

    def test_upload_failure_is_returned(self):
        storage = RecordingStorage(fail_with=RuntimeError("access denied"))
        api = Api(engine=RecordingEngine(), storage=storage, settings=Settings(persist=True))
        with pytest.raises(StorageFailureError):
            api.run("flop", b"buf", {"bucketName": "photos", "objectName": "x.png"})


if __name__ == "__main__":
    pytest.main([__file__])
