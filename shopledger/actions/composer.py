"""Localized operator-facing messages.

Previews and results are rendered in English, Hindi or Telugu with equivalent content. Unknown
locales fall back to English rather than failing.
"""

from __future__ import annotations

from decimal import Decimal
from typing import assert_never

from shopledger.actions.amounts import format_number
from shopledger.actions.executor import (
    ExecutionOutcome,
    ExpenseOutcome,
    InventoryAddOutcome,
    InventoryUpdateOutcome,
    SaleOutcome,
)
from shopledger.actions.models import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_PAYMENT_METHOD,
    ActionKind,
    ActionPayload,
    AddExpense,
    AddInventory,
    AddSale,
    UpdateInventory,
)

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES: tuple[str, ...] = ("en", "hi", "te")

CURRENCY = "₹"

_CASH_LABEL = {"en": "Cash", "hi": "नकद", "te": "నగదు"}

_SALE_PREVIEW = {
    "en": "You want to record a sale:\n{items}\nTotal: {total}\nPayment: {payment}{customer}\n\n"
          "Should I add this sale to your records?",
    "hi": "आप एक बिक्री दर्ज करना चाहते हैं:\n{items}\nकुल: {total}\nभुगतान: {payment}{customer}\n\n"
          "क्या मैं यह बिक्री जोड़ दूं?",
    "te": "మీరు ఒక అమ్మకాన్ని రికార్డ్ చేయాలనుకుంటున్నారు:\n{items}\nమొత్తం: {total}\n"
          "చెల్లింపు: {payment}{customer}\n\nనేను ఈ అమ్మకాన్ని జోడించాలా?",
}

_CUSTOMER_LINE = {"en": "\nCustomer: {name}", "hi": "\nग्राहक: {name}", "te": "\nకస్టమర్: {name}"}

_EXPENSE_PREVIEW = {
    "en": "You want to add an expense:\n• Category: {category}\n• Description: {description}\n"
          "• Amount: {amount}\n\nShould I record this expense?",
    "hi": "आप एक खर्च जोड़ना चाहते हैं:\n• श्रेणी: {category}\n• विवरण: {description}\n"
          "• राशि: {amount}\n\nक्या मैं यह खर्च दर्ज करूं?",
    "te": "మీరు ఒక ఖర్చును జోడించాలనుకుంటున్నారు:\n• వర్గం: {category}\n• వివరణ: {description}\n"
          "• మొత్తం: {amount}\n\nనేను ఈ ఖర్చును రికార్డ్ చేయాలా?",
}

_UPDATE_PREVIEW = {
    "en": "You want to update inventory:\n• Item: {item}\n• Quantity: {qty} units{price}\n\n"
          "Should I update the stock?",
    "hi": "आप इन्वेंटरी अपडेट करना चाहते हैं:\n• आइटम: {item}\n• मात्रा: {qty} इकाइयाँ{price}\n\n"
          "क्या मैं स्टॉक अपडेट करूं?",
    "te": "మీరు ఇన్వెంటరీని నవీకరించాలనుకుంటున్నారు:\n• వస్తువు: {item}\n• పరిమాణం: {qty} యూనిట్లు"
          "{price}\n\nనేను స్టాక్ నవీకరించాలా?",
}

_PRICE_LINE = {"en": "\n• Price: {price}", "hi": "\n• मूल्य: {price}", "te": "\n• ధర: {price}"}

_ADD_PREVIEW = {
    "en": "You want to add a new item:\n• Name: {item}\n• Stock: {qty} units\n• Price: {price}\n"
          "• Category: {category}\n\nShould I add this item?",
    "hi": "आप नया आइटम जोड़ना चाहते हैं:\n• नाम: {item}\n• स्टॉक: {qty} इकाइयाँ\n• मूल्य: {price}\n"
          "• श्रेणी: {category}\n\nक्या मैं यह आइटम जोड़ूं?",
    "te": "మీరు కొత్త వస్తువును జోడించాలనుకుంటున్నారు:\n• పేరు: {item}\n• స్టాక్: {qty} యూనిట్లు\n"
          "• ధర: {price}\n• వర్గం: {category}\n\nనేను ఈ వస్తువును జోడించాలా?",
}

_SUCCESS = {
    ActionKind.add_sale: {
        "en": "✅ Sale recorded successfully! Total: {total}",
        "hi": "✅ बिक्री सफलतापूर्वक दर्ज की गई! कुल: {total}",
        "te": "✅ అమ్మకం విజయవంతంగా రికార్డ్ చేయబడింది! మొత్తం: {total}",
    },
    ActionKind.add_expense: {
        "en": "✅ Expense recorded successfully! Amount: {amount}",
        "hi": "✅ खर्च सफलतापूर्वक दर्ज किया गया! राशि: {amount}",
        "te": "✅ ఖర్చు విజయవంతంగా రికార్డ్ చేయబడింది! మొత్తం: {amount}",
    },
    ActionKind.update_inventory: {
        "en": "✅ Stock updated! {item}: {stock} units",
        "hi": "✅ स्टॉक अपडेट किया गया! {item}: {stock} इकाइयाँ",
        "te": "✅ స్టాక్ నవీకరించబడింది! {item}: {stock} యూనిట్లు",
    },
    ActionKind.add_inventory: {
        "en": "✅ Item added successfully! {item}: {stock} units",
        "hi": "✅ आइटम सफलतापूर्वक जोड़ा गया! {item}: {stock} इकाइयाँ",
        "te": "✅ వస్తువు విజయవంతంగా జోడించబడింది! {item}: {stock} యూనిట్లు",
    },
}

MESSAGES: dict[str, dict[str, str]] = {
    "not_found": {
        "en": "No pending action found. Please try again.",
        "hi": "कोई लंबित कार्रवाई नहीं मिली। कृपया पुनः प्रयास करें।",
        "te": "పెండింగ్ చర్య కనుగొనబడలేదు. దయచేసి మళ్లీ ప్రయత్నించండి.",
    },
    "forbidden": {
        "en": "Unauthorized action.",
        "hi": "अनधिकृत कार्रवाई।",
        "te": "అనధికార చర్య.",
    },
    "cancelled": {
        "en": "Okay, I cancelled that action.",
        "hi": "ठीक है, मैंने वह कार्रवाई रद्द कर दी।",
        "te": "సరే, నేను ఆ చర్యను రద్దు చేసాను.",
    },
    "not_action": {
        "en": "I couldn't turn that into a record change: {reason}",
        "hi": "मैं इसे रिकॉर्ड बदलाव में नहीं बदल सका: {reason}",
        "te": "దీనిని రికార్డ్ మార్పుగా మార్చలేకపోయాను: {reason}",
    },
    "item_not_found": {
        "en": "❌ Item \"{item}\" not found in inventory.",
        "hi": "❌ आइटम \"{item}\" इन्वेंटरी में नहीं मिला।",
        "te": "❌ వస్తువు \"{item}\" ఇన్వెంటరీలో కనుగొనబడలేదు.",
    },
    "insufficient_stock": {
        "en": "❌ Insufficient stock for \"{item}\". Available: {available}, Requested: {requested}",
        "hi": "❌ \"{item}\" का स्टॉक पर्याप्त नहीं है। उपलब्ध: {available}, अनुरोधित: {requested}",
        "te": "❌ \"{item}\" కు తగినంత స్టాక్ లేదు. అందుబాటులో: {available}, అభ్యర్థించినది: {requested}",
    },
    "duplicate_item": {
        "en": "❌ Item \"{item}\" already exists in inventory.",
        "hi": "❌ आइटम \"{item}\" पहले से इन्वेंटरी में है।",
        "te": "❌ వస్తువు \"{item}\" ఇప్పటికే ఇన్వెంటరీలో ఉంది.",
    },
    "internal_failure": {
        "en": "❌ Failed to execute action. Please try again.",
        "hi": "❌ कार्रवाई पूरी नहीं हो सकी। कृपया पुनः प्रयास करें।",
        "te": "❌ చర్యను అమలు చేయడం విఫలమైంది. దయచేసి మళ్లీ ప్రయత్నించండి.",
    },
    "help": {
        "en": "Tell me what happened in the shop, e.g. \"Sold 5 Rice at 30 each\" or \"Paid 5000 for shop rent\". "
              "I will show you a preview to confirm.",
        "hi": "मुझे बताइए दुकान में क्या हुआ, जैसे \"Sold 5 Rice at 30 each\" या \"Paid 5000 for shop rent\"। "
              "मैं पुष्टि के लिए पूर्वावलोकन दिखाऊंगा।",
        "te": "దుకాణంలో ఏమి జరిగిందో చెప్పండి, ఉదా. \"Sold 5 Rice at 30 each\" లేదా \"Paid 5000 for shop rent\". "
              "నిర్ధారణ కోసం నేను ప్రివ్యూ చూపిస్తాను.",
    },
    "confirm_button": {"en": "✅ Confirm", "hi": "✅ पुष्टि करें", "te": "✅ నిర్ధారించండి"},
    "cancel_button": {"en": "❌ Cancel", "hi": "❌ रद्द करें", "te": "❌ రద్దు చేయండి"},
}


def resolve_locale(code: str | None, default: str = DEFAULT_LOCALE) -> str:
    """Map a language code (`hi`, `te-IN`, `en_US`) onto a supported locale."""

    if code:
        base = code.strip().lower().replace("_", "-").split("-")[0]
        if base in SUPPORTED_LOCALES:
            return base
    return default if default in SUPPORTED_LOCALES else DEFAULT_LOCALE


def _pick(table: dict[str, str], locale: str) -> str:
    return table.get(locale) or table[DEFAULT_LOCALE]


def money(value: Decimal) -> str:
    return f"{CURRENCY}{format_number(value)}"


def _sale_preview(payload: AddSale, locale: str) -> str:
    lines = "\n".join(
        f"• {format_number(item.quantity)}x {item.item_name} @ {money(item.price_per_unit)}"
        f" = {money(item.line_total)}"
        for item in payload.items
    )
    payment = payload.payment_method
    if payment == DEFAULT_PAYMENT_METHOD:
        payment = _pick(_CASH_LABEL, locale)
    customer = ""
    if payload.customer_name != DEFAULT_CUSTOMER_NAME:
        customer = _pick(_CUSTOMER_LINE, locale).format(name=payload.customer_name)
    return _pick(_SALE_PREVIEW, locale).format(
        items=lines,
        total=money(payload.total_amount),
        payment=payment,
        customer=customer,
    )


def _update_preview(payload: UpdateInventory, locale: str) -> str:
    qty = format_number(payload.stock_qty)
    if payload.stock_qty > 0:
        qty = f"+{qty}"
    price = ""
    if payload.price_per_unit is not None:
        price = _pick(_PRICE_LINE, locale).format(price=money(payload.price_per_unit))
    return _pick(_UPDATE_PREVIEW, locale).format(item=payload.item_name, qty=qty, price=price)


def compose_preview(payload: ActionPayload, locale: str) -> str:
    """Render the confirmation question shown before a staged action is executed."""

    match payload:
        case AddSale():
            return _sale_preview(payload, locale)
        case AddExpense():
            return _pick(_EXPENSE_PREVIEW, locale).format(
                category=payload.category,
                description=payload.description,
                amount=money(payload.amount),
            )
        case UpdateInventory():
            return _update_preview(payload, locale)
        case AddInventory():
            return _pick(_ADD_PREVIEW, locale).format(
                item=payload.item_name,
                qty=format_number(payload.stock_qty),
                price=money(payload.price_per_unit),
                category=payload.category,
            )
        case _:
            assert_never(payload)


def compose_success(outcome: ExecutionOutcome, locale: str) -> str:
    """Render the confirmation that an action was committed."""

    match outcome:
        case SaleOutcome():
            template = _pick(_SUCCESS[ActionKind.add_sale], locale)
            return template.format(total=money(outcome.total_amount))
        case ExpenseOutcome():
            template = _pick(_SUCCESS[ActionKind.add_expense], locale)
            return template.format(amount=money(outcome.amount))
        case InventoryUpdateOutcome():
            template = _pick(_SUCCESS[ActionKind.update_inventory], locale)
            return template.format(item=outcome.item_name, stock=format_number(outcome.new_stock))
        case InventoryAddOutcome():
            template = _pick(_SUCCESS[ActionKind.add_inventory], locale)
            return template.format(item=outcome.item_name, stock=format_number(outcome.stock))
        case _:
            assert_never(outcome)


def compose_message(key: str, locale: str, **values: object) -> str:
    """Render one of the fixed status messages (`not_found`, `cancelled`, ...)."""

    return _pick(MESSAGES[key], locale).format(**values)
