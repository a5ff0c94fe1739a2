from __future__ import annotations

from unittest.mock import Mock, patch

from brokerage_import.services.progress import PhaseProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    """is_tty_enabled mirrors sys.stdout.isatty()."""
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestPhaseProgress:
    """PhaseProgress creates a tqdm bar only on a TTY."""

    def test_init_with_tty_enabled(self):
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=True), \
             patch('brokerage_import.services.progress.tqdm') as mock_tqdm:

            progress = PhaseProgress(5, description="policies")

            assert progress.total == 5
            assert progress.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="policies",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=False):
            progress = PhaseProgress(5, description="policies")
            assert progress.enabled is False
            assert progress.pbar is None

    def test_empty_phase_has_no_bar(self):
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=True), \
             patch('brokerage_import.services.progress.tqdm') as mock_tqdm:
            progress = PhaseProgress(0, description="children")
            assert progress.pbar is None
            mock_tqdm.assert_not_called()

    def test_advance_updates_bar(self):
        mock_pbar = Mock()
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=True), \
             patch('brokerage_import.services.progress.tqdm', return_value=mock_pbar):
            progress = PhaseProgress(3, description="clients")
            progress.advance()
            progress.advance(failed=True)
            assert progress.done == 2
            assert progress.failed == 1
            assert mock_pbar.update.call_count == 2

    def test_advance_without_tty_counts_only(self):
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=False):
            progress = PhaseProgress(3, description="clients")
            progress.advance()
            assert progress.done == 1

    def test_failures_shown_as_postfix(self):
        mock_pbar = Mock()
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=True), \
             patch('brokerage_import.services.progress.tqdm', return_value=mock_pbar):
            progress = PhaseProgress(3, description="clients")
            progress.advance()
            mock_pbar.set_postfix.assert_not_called()
            progress.advance(failed=True)
            progress.advance(failed=True)
            assert mock_pbar.set_postfix.call_args_list[-1].kwargs == {"failed": 2}

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()
        with patch('brokerage_import.services.progress.is_tty_enabled', return_value=True), \
             patch('brokerage_import.services.progress.tqdm', return_value=mock_pbar):
            with PhaseProgress(2, description="policies") as progress:
                progress.advance()
            mock_pbar.close.assert_called_once()
            assert progress.pbar is None
