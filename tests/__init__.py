# Test suite for Agenda Bot
#
# Run all tests: python tests/run_all_tests.py
# Run specific suite: python tests/run_all_tests.py --suite monitor
# Run with pytest: python -m pytest tests/ -v
#
# Test suites:
#   - test_models.py - Data models (AgendaItem, WarningTier, RoomConfig, ...)
#   - test_timing_service.py - Duration parsing, formatting and elapsed math
#   - test_database_service.py - SQLite persistence layer
#   - test_room_config_service.py - Room -> global -> default resolution
#   - test_agenda_service.py - Adding, ordering and removing items
#   - test_current_item_service.py - Current item and completion flow
#   - test_time_monitor_service.py - Warning tiers and sweeps
#   - test_heartbeat_service.py - Sweep scheduling
#   - test_agenda_orchestrator.py - Commands, permissions and call lifecycle
#   - test_api.py - REST endpoints
