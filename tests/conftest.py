from hypothesis import HealthCheck, settings

# Input generation timing varies by machine; don't fail runs on it.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")
