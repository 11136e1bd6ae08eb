from dataclasses import dataclass
from typing import Optional, Tuple

Strategy = Tuple[str, Optional[str]]

CLOSE_BUTTON_TEXT = "Flash close"


@dataclass(frozen=True)
class Selectors:
    # Market order controls
    market_order_button: str = '[data-test-id="operation-order-type-lightning"]'
    amount_input: str = '[data-test-id="operation-input-amount"]'
    open_long_button: str = '[data-test-id="operation-button-do-order-buy"]'
    open_short_button: str = '[data-test-id="operation-button-do-order-sell"]'

    # Position management
    close_button: str = ".position-block__input-block-pro .btns.el-tooltip"
    close_button_text: str = CLOSE_BUTTON_TEXT
    close_button_alternatives: Tuple[str, ...] = (
        '[data-v-24630492][data-v-70047c39].btns.el-tooltip[tabindex="0"]',
        ".position-block__input-block-pro .btns.el-tooltip",
        ".el-tooltip.black.btn32",
        ".btns",
        ".btn32",
    )
    generic_buttons: str = 'button, [role="button"], .btn, .btns, .button, .el-tooltip'

    # Balance and account info
    available_balance: str = ".value.align-center .text-secondary"

    @property
    def close_strategies(self) -> Tuple[Strategy, ...]:
        """Primary close selector first, then the alternatives, all filtered by the button text."""
        strategies = [(self.close_button, self.close_button_text)]
        strategies += [(sel, self.close_button_text) for sel in self.close_button_alternatives]
        return tuple(strategies)


DEFAULT_SELECTORS = Selectors()
