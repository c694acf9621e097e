from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

WEB_APP_URL = "https://payout.copperx.io"


@dataclass(slots=True)
class TextCatalog:
    messages: Dict[str, Dict[str, str]]

    def get(self, key: str, language: str = "en", **kwargs: object) -> str:
        lang = language if language in self.messages else "en"
        template = self.messages.get(lang, {}).get(key)
        if template is None:
            template = self.messages.get("en", {}).get(key, key)
        return template.format(web_url=WEB_APP_URL, **kwargs)

    def button(self, key: str, language: str = "en", **kwargs: object) -> str:
        return self.get(key, language, **kwargs)


TEXTS = TextCatalog(
    messages={
        "en": {
            "start.welcome": (
                "👋 Welcome! This bot lets you check balances, send funds by email or to a wallet, "
                "withdraw to your bank and pay many people at once.\n\nLog in to get started."
            ),
            "start.welcome.logged_in": "👋 Welcome back, {email}! Choose an action:",
            "help.text": (
                "Commands:\n"
                "/login — log in with a one-time code\n"
                "/balance — wallet balances\n"
                "/wallets — your wallets and default wallet\n"
                "/send — send funds by email or to a wallet\n"
                "/withdraw — withdraw to a bank account\n"
                "/batch — pay several recipients at once\n"
                "/history — recent transactions\n"
                "/profile — account details\n"
                "/cancel — stop the current operation\n"
                "/logout — log out"
            ),
            "menu.title": "Choose an action:",
            "menu.balance": "💰 Balance",
            "menu.send": "📤 Send",
            "menu.withdraw": "🏦 Withdraw",
            "menu.batch": "📦 Batch",
            "menu.history": "📜 History",
            "menu.wallets": "👛 Wallets",
            "menu.profile": "👤 Profile",
            "menu.login": "🔐 Log in",
            "menu.logout": "🚪 Log out",
            "menu.help": "❓ Help",
            "button.confirm": "✅ Confirm",
            "button.cancel": "❌ Cancel",
            "button.skip": "⏭ Skip",
            "button.continue": "Continue anyway",
            "button.reenter": "✏️ Re-enter address",
            "button.use_suggestion": "Use {email}",
            "button.large_confirm": "Yes, continue",
            "flow.cancelled": "Operation cancelled. Nothing was sent.",
            "flow.idle": "There is no active operation. Choose an action from the menu.",
            "flow.login_required": "Please log in first with /login.",
            "flow.session_expired": "🔒 Your session has expired, so the operation was not completed. Please /login again.",
            "flow.selection.invalid": "Please send a number from 1 to {count}.",
            "error.generic": "⚠️ The operation was not completed: {reason}",
            "error.insufficient_balance": "❌ The operation was not completed: your balance is too low for this amount.",
            "error.below_minimum": "❌ The operation was not completed: the amount is below the allowed minimum.",
            "error.over_limit": "❌ The operation was not completed: the amount is over your limit.",
            "error.kyc_required": "❌ The operation was not completed: complete KYC verification at {web_url} first.",
            "error.invalid_otp": "❌ Login failed: the code is invalid or has expired. Use /login to request a new one.",
            "error.unknown_email": "❌ Login failed: there is no account for this email. Sign up at {web_url} first.",
            "amount.invalid": "Please enter a positive number with at most 8 decimals, e.g. 25 or 10.5.",
            "amount.too_large": "That amount is too large. Please enter at most {max}.",
            "amount.large.warning": "⚠️ You are about to move <b>{amount} {token}</b>. Please confirm this large amount.",
            "confirm.reprompt": "Please tap Confirm or Cancel.",
            "token.prompt": "💰 Choose the token on {network}:\n{options}",
            "send.menu": "How do you want to send?",
            "send.menu.email": "📧 By email",
            "send.menu.wallet": "🔑 To a wallet address",
            "send.email.prompt": "📧 Enter the recipient's email address:",
            "send.email.invalid": "That does not look like a valid email address. Please try again, e.g. name@example.com.",
            "send.wallet.prompt": "🔑 Enter the recipient's wallet address:",
            "send.wallet.invalid": "This address is not valid on any network you hold funds on. Please check it and send it again.",
            "send.no_balances": "You have no funds to send yet. Deposit to one of your wallets first.",
            "send.network.prompt": "🌐 Choose the network (send its number):\n{options}",
            "send.network.typo": "\n\n⚠️ Did you mean <b>{suggestion}</b>? Tap the button to use it, or pick a network to keep {original}.",
            "send.network.suggestion_applied": "Recipient updated to {email}.\n\n",
            "send.address.warning": (
                "⚠️ The address does not look valid on {network}. Funds sent to a wrong address are lost.\n"
                "Continue anyway, re-enter the address, or cancel."
            ),
            "send.amount.prompt": "Enter the amount of {token} to send (available: {balance}):",
            "send.note.prompt": "📝 Add a note for the recipient, or send 'skip'.",
            "send.note.empty": "The note is empty. Send a note or 'skip'.",
            "send.confirm": (
                "<b>Please confirm the transfer</b>\n"
                "Recipient: {recipient}\n"
                "Network: {network}\n"
                "Amount: {amount} {token}\n"
                "Note: {note}"
            ),
            "send.success": "✅ Transfer submitted.\nID: <code>{id}</code>\nStatus: {status}",
            "withdraw.no_accounts": "You have no bank accounts yet. Add one at {web_url} and try again. No withdrawal was made.",
            "withdraw.kyc.required": (
                "🔒 Bank withdrawals need approved KYC (current status: {status}). "
                "Complete verification at {web_url}. The withdrawal was not made."
            ),
            "withdraw.account.prompt": "🏦 Choose the bank account (send its number):\n{options}",
            "withdraw.account.option": "{bank} •••• {last4}",
            "withdraw.network.prompt": "🌐 Choose the network to withdraw from:\n{options}",
            "withdraw.amount.prompt": "Enter the amount of {token} to withdraw (available: {balance}):",
            "withdraw.confirm.quote": (
                "<b>Please confirm the withdrawal</b>\n"
                "Bank: {bank}\n"
                "Amount: {amount} {token}\n"
                "Fee: {fee}\n"
                "You receive: {receive}"
            ),
            "withdraw.confirm.estimate": (
                "<b>Please confirm the withdrawal</b>\n"
                "Bank: {bank}\n"
                "Amount: {amount} {token}\n"
                "Fee (estimate): {fee}\n"
                "You receive (estimate): {receive}\n"
                "<i>A live quote is not available right now. Final figures are fixed when you confirm.</i>"
            ),
            "withdraw.success": "✅ Withdrawal submitted.\nID: <code>{id}</code>\nStatus: {status}",
            "batch.prompt": (
                "📦 Send recipients one per line as <code>email amount</code> ({currency}).\n"
                "DONE reviews the list, LIST shows it, CLEAR empties it, CANCEL stops."
            ),
            "batch.invalid_line": (
                "Line {line} is not valid: <code>{text}</code>\n"
                "Use <code>email amount</code>. Nothing from this message was added."
            ),
            "batch.added": "Added {count} recipient(s). {total_count} in the list, total {total} {currency}. Send more or DONE.",
            "batch.empty": "The list is empty. Add at least one recipient first.",
            "batch.entry": "{index}. {email} — {amount} {currency}",
            "batch.list": "<b>Recipients</b>\n{lines}\nTotal: {total} {currency}",
            "batch.cleared": "The list was cleared.",
            "batch.duplicate": (
                "{email} is already in the list with {current} {currency}. "
                "Send YES to replace it with {amount}, anything else keeps the current amount."
            ),
            "batch.duplicate.replaced": "Updated {email} to {amount} {currency}.",
            "batch.duplicate.kept": "Kept {email} at {amount} {currency}.",
            "batch.confirm": "<b>Please confirm the batch</b>\n{lines}\nRecipients: {count}\nTotal: {total} {currency}",
            "batch.result.header": "📦 Batch submitted:",
            "batch.result.ok": "✅ {email}: {status}",
            "batch.result.failed": "❌ {email}: {error}",
            "login.already": "You are already logged in as {email}. Use /logout to switch accounts.",
            "login.email.prompt": "📧 Enter the email of your account:",
            "login.email.invalid": "That does not look like a valid email address. Please try again.",
            "login.otp.prompt": "We sent a one-time code to {email}. Enter it here:",
            "login.otp.invalid": "The code must contain digits only. Please enter it again.",
            "login.success": "✅ Logged in as {email}.",
            "logout.done": "You have been logged out.",
            "wallet.default.prompt": "⭐ Choose the new default wallet:\n{options}",
            "wallet.default.none": "You have no wallets yet. Generate one first.",
            "wallet.default.done": "✅ Default wallet set to {network}: <code>{address}</code>",
            "wallet.generate.prompt": "➕ Choose the network for the new wallet:\n{options}",
            "wallet.generate.done": "✅ New wallet on {network}: <code>{address}</code>",
            "balance.header": "💰 <b>Your balances</b>",
            "balance.network": "\n{network}{default}",
            "balance.token": "  • {token}: {amount}",
            "balance.empty": "You have no balances yet.",
            "balance.default_marker": " ⭐",
            "wallets.header": "👛 <b>Your wallets</b>",
            "wallets.line": "\n{network}{default}\n<code>{address}</code>",
            "wallets.empty": "You have no wallets yet.",
            "wallets.button.default": "⭐ Set default",
            "wallets.button.generate": "➕ New wallet",
            "history.header": "📜 <b>Transactions</b> (page {page})",
            "history.line": "{icon} {type} {amount} {currency}{counterparty} · {date}",
            "history.empty": "No transactions yet.",
            "history.prev": "◀️ Previous",
            "history.next": "Next ▶️",
            "profile.text": (
                "👤 <b>Profile</b>\n"
                "Email: {email}\n"
                "User ID: {user_id}\n"
                "Organization: {organization}\n"
                "KYC: {kyc}"
            ),
        },
    }
)
