"""
Selectors, scripts and text markers for the plate selection portal.
"""

# Query form
DEPARTMENT_SELECT = "#selDeptCode"
STATION_SELECT = "#selStationCode"
WINDOW_SELECT = "#selWindowNo"
CAR_TYPE_SELECT = "#selCarType"
ENERGY_TYPE_SELECT = "#selEnergyType"
PLATE_TYPE_SELECT = "#selPlateType"

CAR_TYPE_VALUE = "C"
ENERGY_TYPE_VALUE = "E"

# CAPTCHA
CAPTCHA_IMAGE = "#pickimg"
CAPTCHA_INPUT = "#validateStr"
CAPTCHA_REFRESH_SELECTORS = ("#pickimg + a", 'a[onclick*="pickimg"]')

# Results
NEXT_PAGE_SELECTORS = ('input[name="status_next_page"]', "#next")

NO_DATA_MARKERS = ("查無資料", "尚無可供選號", "對不起")


def window_option(window_id: str) -> str:
    return f'{WINDOW_SELECT} option[value="{window_id}"]'


def plate_type_option(plate_type: str) -> str:
    return f'{PLATE_TYPE_SELECT} option[value="{plate_type}"]'


SELECT_FIRST_WINDOW_SCRIPT = """
() => {
    const select = document.querySelector('#selWindowNo');
    if (!select || select.options.length < 2) return null;
    select.selectedIndex = 1;
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return select.options[1].value;
}
"""

SUBMIT_SCRIPT = """
() => {
    if (typeof window.doSubmit === 'function') {
        window.doSubmit();
    }
}
"""

RESULTS_READY_SCRIPT = """
() => !!document.querySelector('.number_cell') || document.body.innerText.includes('查無資料')
"""

PAGE_TEXT_SCRIPT = "() => document.body.innerText"

SCRAPE_ROWS_SCRIPT = """
() => Array.from(document.querySelectorAll('.number_cell')).map(el => ({
    no: el.querySelector('.number')?.innerText.trim(),
    price: el.querySelector('.price')?.innerText.trim()
})).filter(x => x.no)
"""

# Discovery: option values of a select, excluding the "0" placeholder
SELECT_OPTIONS_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector + ' option'))
    .filter(o => o.value && o.value !== '0')
    .map(o => ({ value: o.value, label: o.innerText.trim() }))
"""
